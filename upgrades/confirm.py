from upgrades.errors import UpgradeAborted


def _confirm_upgrade(target) -> None:
    """Asks the operator to confirm a single beacon upgrade."""
    print(f"\nUpgrade parameters for {target.name}")
    print(f"\tproxy={target.proxy_address}")
    print(f"\tbeacon={target.beacon_address}")
    print(f"\tnewImplementation={target.implementation_address}")
    answer = input(f"Upgrade {target.name} Y/N? ")
    if answer.lower().strip() == "n":
        print("Aborting upgrade!")
        raise UpgradeAborted(f"Operator declined upgrade of {target.name}")


def _continue() -> None:
    """Asks the operator to continue."""
    answer = input("Continue Y/N? ")
    if answer.lower().strip() == "n":
        print("Aborting upgrade!")
        raise UpgradeAborted("Operator aborted the upgrade run")
