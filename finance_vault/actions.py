"""
State commands and the single transition function.

Every change to ApplicationState is expressed as one of the commands below
and applied by ``reduce(action, state)``, which is pure: it never touches
storage, clocks or random sources. Records are built (ids drawn, fields
sanitized and validated) by the store before they are dispatched.
"""
from dataclasses import dataclass, field
from datetime import date
from functools import singledispatch
from typing import Optional, Union

from .models import ApplicationState, Bank, Expense, FixedExpense, Salary


@dataclass(frozen=True)
class Hydrate:
    state: ApplicationState


@dataclass(frozen=True)
class Reset:
    pass


@dataclass(frozen=True)
class AddBank:
    bank: Bank


@dataclass(frozen=True)
class EditBank:
    bank_id: str
    name: str


@dataclass(frozen=True)
class RemoveBank:
    bank_id: str


@dataclass(frozen=True)
class AddExpense:
    expense: Expense


@dataclass(frozen=True)
class EditExpense:
    expense: Expense


@dataclass(frozen=True)
class RemoveExpense:
    expense_id: str


@dataclass(frozen=True)
class CleanMonthlyExpenses:
    today: date = field(default_factory=date.today)


@dataclass(frozen=True)
class SetSalary:
    salary: Optional[Salary]


@dataclass(frozen=True)
class SetFixedExpenses:
    fixed_expenses: FixedExpense


Action = Union[
    Hydrate,
    Reset,
    AddBank,
    EditBank,
    RemoveBank,
    AddExpense,
    EditExpense,
    RemoveExpense,
    CleanMonthlyExpenses,
    SetSalary,
    SetFixedExpenses,
]


@singledispatch
def reduce(action: Action, state: ApplicationState) -> ApplicationState:
    """Return the state that results from applying ``action``."""
    raise TypeError(f"Unknown action: {type(action).__name__}")


@reduce.register
def _(action: Hydrate, state: ApplicationState) -> ApplicationState:
    return action.state


@reduce.register
def _(action: Reset, state: ApplicationState) -> ApplicationState:
    return ApplicationState.empty()


@reduce.register
def _(action: AddBank, state: ApplicationState) -> ApplicationState:
    return state.model_copy(update={"banks": [*state.banks, action.bank]})


@reduce.register
def _(action: EditBank, state: ApplicationState) -> ApplicationState:
    banks = [
        bank.model_copy(update={"name": action.name})
        if bank.id == action.bank_id else bank
        for bank in state.banks
    ]
    return state.model_copy(update={"banks": banks})


@reduce.register
def _(action: RemoveBank, state: ApplicationState) -> ApplicationState:
    # cascade: expenses charged to the bank go with it
    return state.model_copy(update={
        "banks": [b for b in state.banks if b.id != action.bank_id],
        "expenses": [e for e in state.expenses if e.bank_id != action.bank_id],
    })


@reduce.register
def _(action: AddExpense, state: ApplicationState) -> ApplicationState:
    # newest first
    return state.model_copy(update={"expenses": [action.expense, *state.expenses]})


@reduce.register
def _(action: EditExpense, state: ApplicationState) -> ApplicationState:
    expenses = [
        action.expense if e.id == action.expense.id else e
        for e in state.expenses
    ]
    return state.model_copy(update={"expenses": expenses})


@reduce.register
def _(action: RemoveExpense, state: ApplicationState) -> ApplicationState:
    return state.model_copy(update={
        "expenses": [e for e in state.expenses if e.id != action.expense_id],
    })


@reduce.register
def _(action: CleanMonthlyExpenses, state: ApplicationState) -> ApplicationState:
    kept = [
        e for e in state.expenses
        if e.in_month(action.today) or e.recurring
    ]
    return state.model_copy(update={"expenses": kept})


@reduce.register
def _(action: SetSalary, state: ApplicationState) -> ApplicationState:
    return state.model_copy(update={"salary": action.salary})


@reduce.register
def _(action: SetFixedExpenses, state: ApplicationState) -> ApplicationState:
    return state.model_copy(update={"fixed_expenses": action.fixed_expenses})
