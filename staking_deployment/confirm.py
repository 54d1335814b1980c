from staking_deployment.params import PoolConfig


def _confirm_deployment(contract_name: str) -> None:
    """Asks the user to confirm the deployment of a single contract."""
    answer = input(f"Deploy {contract_name} Y/N? ")
    if answer.lower().strip() == "n":
        print("Aborting deployment!")
        exit(-1)


def _continue() -> None:
    """Asks the user to continue."""
    answer = input("Continue Y/N? ")
    if answer.lower().strip() == "n":
        print("Aborting deployment!")
        exit(-1)


def _confirm_pool(pool: PoolConfig) -> None:
    """Asks the user to confirm the parameters of a single pool."""
    print(f"\nParameters for pool '{pool.name}'")
    for name, value in pool._asdict().items():
        print(f"\t{name}={value}")
    _confirm_deployment(pool.name)
