"""
bbl.aws — Narrow wrappers over the AWS APIs bbl drives.

Each wrapper takes its boto3 clients from a ClientProvider bound to the
credentials in the bbl state, so no process-wide AWS configuration is used.
"""
