"""
Bank account with checked methods

Run with different behaviors:
    python examples/bank_account.py
    VOUCH_BEHAVIOR=report python examples/bank_account.py
    VOUCH_CFG=audit python examples/bank_account.py
"""

from vouch import ContractViolation, Specified, spec


class Account(Specified):
    def __init__(self, owner: str, balance: int = 0):
        self.owner = owner
        self.balance = balance
        self.history = []

    @spec("""
        requires: amount > 0,
        maintains: self.balance >= 0,
        captures: [self.balance as before, len(self.history) as entries],
        ensures: [
            self.balance == before + amount,
            len(self.history) == entries + 1,
        ],
    """)
    def deposit(self, amount: int) -> None:
        self.balance += amount
        self.history.append(("deposit", amount))

    @spec("""
        requires: [amount > 0, amount <= self.balance],
        maintains: self.balance >= 0,
        captures: self.balance as before,
        binds: (taken, remaining),
        ensures: [taken == amount, remaining == before - amount],
        #[cfg(audit)]
        ensures: self.history[-1] == ("withdraw", amount),
    """)
    def withdraw(self, amount: int):
        self.balance -= amount
        self.history.append(("withdraw", amount))
        return amount, self.balance


class FeeAccount(Account):
    """Charges a fee on deposits; the inherited contract catches it"""

    def deposit(self, amount: int) -> None:
        self.balance += amount - 1
        self.history.append(("deposit", amount))


def main():
    account = Account("ada", 10)
    account.deposit(5)
    print(f"Deposited: balance {account.balance}")
    print(f"Withdrew: {account.withdraw(3)}")

    try:
        account.withdraw(100)
    except ContractViolation as e:
        print(f"Rejected: {e}")

    try:
        FeeAccount("bob").deposit(10)
    except ContractViolation as e:
        print(f"Rejected: {e}")


if __name__ == "__main__":
    main()
