"""Read-only aggregation of accounts for tables, cards and reports."""

from collections import OrderedDict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from gestao_contas.models import Account, AccountStatus, InstallmentSchedule

# Higher wins when several siblings disagree
STATUS_PRIORITY: dict[AccountStatus, int] = {
    AccountStatus.OVERDUE: 2,
    AccountStatus.PENDING: 1,
    AccountStatus.PAID: 0,
}


class ReportType(str, Enum):
    """Account subsets offered by the reports tab."""

    FULL = "completo"
    PAID = "pagas"
    OVERDUE = "vencidas"
    TO_PAY = "a_pagar"


REPORT_TYPE_LABELS: dict[ReportType, str] = {
    ReportType.FULL: "Relatório Completo",
    ReportType.PAID: "Contas Pagas",
    ReportType.OVERDUE: "Contas Vencidas",
    ReportType.TO_PAY: "Contas a Pagar",
}


@dataclass
class AccountRow:
    """One row of the accounts table.

    Single accounts have no children. A group row is synthesized from the
    installments of one purchase and is never persisted.
    """

    account: Account
    children: list[Account] = field(default_factory=list)

    @property
    def is_group(self) -> bool:
        return bool(self.children)

    @property
    def due_date(self) -> date:
        return self.account.due_date


@dataclass(frozen=True)
class DashboardSummary:
    """Sums shown on the summary cards."""

    paid: Decimal = Decimal("0.00")
    open: Decimal = Decimal("0.00")
    overdue: Decimal = Decimal("0.00")
    paid_count: int = 0
    open_count: int = 0
    overdue_count: int = 0

    @property
    def total(self) -> Decimal:
        return self.paid + self.open + self.overdue


def aggregate_status(statuses: Iterable[AccountStatus]) -> AccountStatus:
    """Overdue if any is overdue, else pending if any is pending, else paid."""
    return max(statuses, key=STATUS_PRIORITY.__getitem__, default=AccountStatus.PAID)


def _installment_number(account: Account) -> int:
    schedule = account.schedule
    return schedule.current if isinstance(schedule, InstallmentSchedule) else 0


def _parent_row(siblings: list[Account]) -> AccountRow:
    children = sorted(siblings, key=lambda a: (_installment_number(a), a.due_date))
    earliest = min(children, key=lambda a: a.due_date)
    parent = children[0].copy(
        id=None,
        total_value=sum((a.total_value for a in children), Decimal("0.00")),
        status=aggregate_status(a.status for a in children),
        due_date=earliest.due_date,
    )
    return AccountRow(account=parent, children=children)


def group_accounts(accounts: Sequence[Account]) -> list[AccountRow]:
    """Collapse installments of the same purchase into parent rows.

    Accounts that are not installments, or have no group id, stay single.
    The result is sorted by due date ascending.
    """
    singles: list[AccountRow] = []
    groups: OrderedDict[UUID, list[Account]] = OrderedDict()

    for account in accounts:
        if account.is_installment and account.group_id is not None:
            groups.setdefault(account.group_id, []).append(account)
        else:
            singles.append(AccountRow(account=account))

    rows = singles + [_parent_row(siblings) for siblings in groups.values()]
    return sorted(rows, key=lambda row: row.due_date)


def summarize(accounts: Iterable[Account]) -> DashboardSummary:
    """Reduce accounts into paid/open/overdue sums and counts."""
    sums = {status: Decimal("0.00") for status in AccountStatus}
    counts = {status: 0 for status in AccountStatus}
    for account in accounts:
        sums[account.status] += account.total_value
        counts[account.status] += 1
    return DashboardSummary(
        paid=sums[AccountStatus.PAID],
        open=sums[AccountStatus.PENDING],
        overdue=sums[AccountStatus.OVERDUE],
        paid_count=counts[AccountStatus.PAID],
        open_count=counts[AccountStatus.PENDING],
        overdue_count=counts[AccountStatus.OVERDUE],
    )


def effective_status(account: Account, today: date) -> AccountStatus:
    """Status as of ``today``: a pending account past its due date is overdue."""
    if account.status is AccountStatus.PENDING and account.due_date < today:
        return AccountStatus.OVERDUE
    return account.status


def filter_for_report(
    accounts: Iterable[Account], report_type: ReportType, today: date
) -> list[Account]:
    """Select the accounts a report of the given type lists."""
    if report_type is ReportType.PAID:
        return [a for a in accounts if a.status is AccountStatus.PAID]
    if report_type is ReportType.OVERDUE:
        return [a for a in accounts if effective_status(a, today) is AccountStatus.OVERDUE]
    if report_type is ReportType.TO_PAY:
        return [
            a for a in accounts
            if a.status is AccountStatus.PENDING and a.due_date >= today
        ]
    return list(accounts)


def totals_by_status(accounts: Iterable[Account]) -> dict[AccountStatus, Decimal]:
    """Sum of values per status, in first-seen order; feeds the status chart."""
    totals: dict[AccountStatus, Decimal] = {}
    for account in accounts:
        totals[account.status] = totals.get(account.status, Decimal("0.00")) + account.total_value
    return totals
