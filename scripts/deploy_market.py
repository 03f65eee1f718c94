#!/usr/bin/python3
"""
Deploys the Market contract; run with `ape run deploy_market`.
See contract_deployer/constructor_params/market.yml for the owner address.
"""
from contract_deployer.cli import cli

if __name__ == "__main__":
    cli()
