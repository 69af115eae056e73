"""
bbl.aws.cloudformation — The bbl CloudFormation stack: template, lifecycle, facade.
"""
