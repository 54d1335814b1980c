#!/usr/bin/env python3

import os

from ape_accounts import import_account_from_private_key

DEPLOYER_ALIAS = "DEPLOYER"


def main():
    try:
        passphrase = os.environ["DEPLOYER_PASSPHRASE"]
        private_key = os.environ["DEPLOYER_PRIVATE_KEY"]
    except KeyError:
        raise Exception(
            "There are missing environment variables. "
            "Please set DEPLOYER_PASSPHRASE and DEPLOYER_PRIVATE_KEY."
        )
    account = import_account_from_private_key(DEPLOYER_ALIAS, passphrase, private_key)
    print(f"Deployer account imported as {DEPLOYER_ALIAS}: {account.address}")


if __name__ == "__main__":
    main()
