"""
Entry dispatch for the secret escrow: instantiate, execute and query, plus
the AWS Lambda host adapter in `contract.handler`.
"""
