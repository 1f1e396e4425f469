"""
Tests for specified interfaces
"""

import pytest
from vouch import BuildConfig, ContractViolation, Specified, configure, spec, specification_of


@pytest.fixture(autouse=True)
def abort_config():
    previous = configure(BuildConfig())
    yield
    configure(previous)


def make_account():
    class Account(Specified):
        def __init__(self, balance=0):
            self.balance = balance

        @spec("""
            requires: amount > 0,
            captures: self.balance as before,
            ensures: self.balance == before + amount,
        """)
        def deposit(self, amount):
            self.balance += amount

        def describe(self):
            return f"balance {self.balance}"

    return Account


def test_override_inherits_specification():
    """Test a subclass method is checked against the base contract"""
    Account = make_account()

    class Doubling(Account):
        def deposit(self, amount):
            self.balance += amount * 2

    with pytest.raises(ContractViolation) as exc:
        Doubling().deposit(5)
    assert str(exc.value) == "Postcondition failed: self.balance == before + amount"

    with pytest.raises(ContractViolation) as exc:
        Doubling().deposit(-1)
    assert str(exc.value) == "Precondition failed: amount > 0"

    assert specification_of(Doubling.deposit) is specification_of(Account.deposit)


def test_correct_override_passes():
    """Test a conforming override runs normally"""
    Account = make_account()

    class Logged(Account):
        def deposit(self, amount):
            self.balance = self.balance + amount
            return "ok"

    account = Logged(10)
    assert account.deposit(5) == "ok"
    assert account.balance == 15


def test_unspecified_methods_untouched():
    """Test overrides of plain methods are left alone"""
    Account = make_account()

    class Renamed(Account):
        def describe(self):
            return "renamed"

    assert Renamed().describe() == "renamed"
    assert specification_of(Renamed.describe) is None


def test_grandchild_inherits():
    """Test the contract passes through several levels"""
    Account = make_account()

    class Middle(Account):
        pass

    class Leaf(Middle):
        def deposit(self, amount):
            pass

    with pytest.raises(ContractViolation):
        Leaf().deposit(3)


def test_override_cannot_add_spec():
    """Test overrides may not declare their own contract"""
    Account = make_account()

    with pytest.raises(TypeError):
        class Stricter(Account):
            @spec("requires: amount > 10")
            def deposit(self, amount):
                self.balance += amount
