"""
bbl.bosh — Talking to a running BOSH director.
"""
