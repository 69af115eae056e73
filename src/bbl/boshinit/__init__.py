"""
bbl.boshinit — Everything bbl hands to bosh-init: credentials, manifest, process.
"""
