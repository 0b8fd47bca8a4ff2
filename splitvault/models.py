from datetime import datetime
from enum import Enum
from werkzeug.security import generate_password_hash, check_password_hash
from flask_login import UserMixin
from splitvault.extensions import db


# ============================================================
# ENUMS
# ============================================================
class ExpenseStatus(Enum):
    OPEN = 'open'
    PARTIALLY_SETTLED = 'partially_settled'
    FULLY_SETTLED = 'fully_settled'


class SettlementMode(Enum):
    ESCROWED = 'escrowed'
    DIRECT = 'direct'


# Scope id of expenses that do not belong to a group
INSTANT_SCOPE = 0


# ============================================================
# USER MODEL
# ============================================================
class User(UserMixin, db.Model):
    """
    A registered account. The address is the identity used everywhere
    in the ledger (group membership, splits, balances, batches).
    """
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    address = db.Column(db.String(64), unique=True, nullable=False)
    name = db.Column(db.String(100), nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def set_password(self, password):
        """Hash and set the user's password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Verify password against stored hash."""
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f'<User {self.address}>'


# ============================================================
# GROUP MODEL
# ============================================================
class Group(db.Model):
    """
    A named set of participants who share expenses.

    Ids are dense and start at 1. Membership is fixed at creation;
    the admin is always the first member.
    """
    __tablename__ = 'groups'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    admin = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    members = db.relationship('GroupMember', backref='group', lazy='dynamic',
                              order_by='GroupMember.position',
                              cascade='all, delete-orphan')
    expenses = db.relationship('Expense', backref='group', lazy='dynamic',
                               order_by='Expense.number')

    def member_addresses(self):
        return [m.address for m in self.members]

    def is_member(self, address):
        return self.members.filter_by(address=address).first() is not None

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'admin': self.admin,
            'members': self.member_addresses(),
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Group {self.id} {self.name}>'


# ============================================================
# GROUP MEMBER MODEL
# ============================================================
class GroupMember(db.Model):
    """
    One entry of a group's member list. Rows are also the per-user
    group index: querying by address in id order yields the groups a
    user belongs to in the order they joined.
    """
    __tablename__ = 'group_members'

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey('groups.id'), nullable=False)
    address = db.Column(db.String(64), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)
    joined_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('group_id', 'address', name='unique_group_member'),
    )

    def __repr__(self):
        return f'<GroupMember {self.address} group={self.group_id}>'


# ============================================================
# EXPENSE MODEL
# ============================================================
class Expense(db.Model):
    """
    A claim by a payer that an amount is owed, apportioned across members.

    Expenses are addressed by (scope_id, number): scope_id is the group id,
    or INSTANT_SCOPE for unscoped peer-to-peer expenses, and number is dense
    per scope starting at 1.

    Invariants:
    - sum of ExpenseSplit.amount == amount
    - settled_amount only grows, by one member's outstanding at a time
    - fully_settled <=> settled_amount == amount
    """
    __tablename__ = 'expenses'

    id = db.Column(db.Integer, primary_key=True)
    scope_id = db.Column(db.Integer, nullable=False, index=True)
    number = db.Column(db.Integer, nullable=False)
    group_id = db.Column(db.Integer, db.ForeignKey('groups.id'), nullable=True)

    payer = db.Column(db.String(64), nullable=False)
    amount = db.Column(db.BigInteger, nullable=False)
    settled_amount = db.Column(db.BigInteger, default=0, nullable=False)
    description = db.Column(db.String(500), default='')
    fully_settled = db.Column(db.Boolean, default=False, nullable=False)

    # Unix seconds; meaningful for instant expenses
    timestamp = db.Column(db.BigInteger, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    splits = db.relationship('ExpenseSplit', backref='expense', lazy='dynamic',
                             order_by='ExpenseSplit.position',
                             cascade='all, delete-orphan')

    __table_args__ = (
        db.UniqueConstraint('scope_id', 'number', name='unique_scoped_expense'),
    )

    @property
    def is_instant(self):
        return self.scope_id == INSTANT_SCOPE

    @property
    def status(self):
        if self.fully_settled:
            return ExpenseStatus.FULLY_SETTLED
        if self.settled_amount > 0:
            return ExpenseStatus.PARTIALLY_SETTLED
        return ExpenseStatus.OPEN

    def get_split(self, member):
        return self.splits.filter_by(member=member).first()

    def outstanding_for(self, member):
        split = self.get_split(member)
        return split.outstanding if split else 0

    def has_settled(self, member):
        split = self.get_split(member)
        return bool(split and split.has_settled)

    def to_dict(self):
        return {
            'id': self.number,
            'group_id': self.scope_id,
            'instant': self.is_instant,
            'payer': self.payer,
            'amount': self.amount,
            'settled_amount': self.settled_amount,
            'description': self.description,
            'fully_settled': self.fully_settled,
            'status': self.status.value,
            'timestamp': self.timestamp,
            'splits': [s.to_dict() for s in self.splits],
        }

    def __repr__(self):
        return f'<Expense {self.scope_id}/{self.number} amount={self.amount}>'


# ============================================================
# EXPENSE SPLIT MODEL
# ============================================================
class ExpenseSplit(db.Model):
    """
    One member's share of an expense.

    amount is the share placed at creation and never changes;
    outstanding drops to zero when the member settles.
    """
    __tablename__ = 'expense_splits'

    id = db.Column(db.Integer, primary_key=True)
    expense_id = db.Column(db.Integer, db.ForeignKey('expenses.id'), nullable=False)
    member = db.Column(db.String(64), nullable=False)
    position = db.Column(db.Integer, nullable=False)
    amount = db.Column(db.BigInteger, nullable=False)
    outstanding = db.Column(db.BigInteger, nullable=False)
    has_settled = db.Column(db.Boolean, default=False, nullable=False)
    settled_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.UniqueConstraint('expense_id', 'member', name='unique_expense_split'),
    )

    def to_dict(self):
        return {
            'member': self.member,
            'amount': self.amount,
            'outstanding': self.outstanding,
            'has_settled': self.has_settled,
        }

    def __repr__(self):
        return f'<ExpenseSplit {self.member} outstanding={self.outstanding}>'


# ============================================================
# INSTANT EXPENSE INDEX
# ============================================================
class InstantExpenseIndex(db.Model):
    """Per-user reverse index of instant expenses, in insertion order."""
    __tablename__ = 'instant_expense_index'

    id = db.Column(db.Integer, primary_key=True)
    address = db.Column(db.String(64), nullable=False, index=True)
    expense_id = db.Column(db.Integer, db.ForeignKey('expenses.id'), nullable=False)

    expense = db.relationship('Expense')


# ============================================================
# BALANCE ENTRY MODEL
# ============================================================
class BalanceEntry(db.Model):
    """
    Funds a user has deposited and can use to settle or withdraw.

    CRITICAL: available is never negative and only changes through
    deposit, withdraw and escrowed settlement.
    """
    __tablename__ = 'balance_entries'

    address = db.Column(db.String(64), primary_key=True)
    available = db.Column(db.BigInteger, default=0, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<BalanceEntry {self.address} available={self.available}>'


# ============================================================
# DEPOSIT BATCH MODEL (YIELD POOL)
# ============================================================
class DepositBatch(db.Model):
    """
    One discrete supply of principal into the yield pool.

    amount is the principal still escrowed; principal is what was
    supplied. deposited_at (unix seconds) never changes, so a batch
    keeps accruing from its original start after partial withdrawals.

    slot is the batch's index in its depositor's list. Drained batches
    are replaced by the last batch, so slot order is not stable.
    """
    __tablename__ = 'deposit_batches'

    id = db.Column(db.Integer, primary_key=True)
    depositor = db.Column(db.String(64), nullable=False, index=True)
    slot = db.Column(db.Integer, nullable=False)
    amount = db.Column(db.BigInteger, nullable=False)
    principal = db.Column(db.BigInteger, nullable=False)
    deposited_at = db.Column(db.BigInteger, nullable=False)

    def to_dict(self):
        return {
            'slot': self.slot,
            'amount': self.amount,
            'principal': self.principal,
            'deposited_at': self.deposited_at,
        }

    def __repr__(self):
        return f'<DepositBatch {self.depositor}[{self.slot}] amount={self.amount}>'


# ============================================================
# TOKEN MODELS (ASSET PORT)
# ============================================================
class TokenAccount(db.Model):
    __tablename__ = 'token_accounts'

    address = db.Column(db.String(64), primary_key=True)
    balance = db.Column(db.BigInteger, default=0, nullable=False)

    def __repr__(self):
        return f'<TokenAccount {self.address} balance={self.balance}>'


class TokenAllowance(db.Model):
    __tablename__ = 'token_allowances'

    id = db.Column(db.Integer, primary_key=True)
    owner = db.Column(db.String(64), nullable=False)
    spender = db.Column(db.String(64), nullable=False)
    amount = db.Column(db.BigInteger, default=0, nullable=False)

    __table_args__ = (
        db.UniqueConstraint('owner', 'spender', name='unique_allowance'),
    )


# ============================================================
# LEDGER EVENT MODEL
# ============================================================
class LedgerEvent(db.Model):
    """
    Append-only log of observable events for off-chain indexers.
    Written in the same transaction as the operation that emits it.
    """
    __tablename__ = 'ledger_events'

    id = db.Column(db.Integer, primary_key=True)
    event_type = db.Column(db.String(40), nullable=False, index=True)
    payload = db.Column(db.JSON, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'event': self.event_type,
            'args': self.payload,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<LedgerEvent {self.event_type}>'


# ============================================================
# PROTOCOL STATE MODEL
# ============================================================
class ProtocolState(db.Model):
    """Singleton row holding the pause switch."""
    __tablename__ = 'protocol_state'

    id = db.Column(db.Integer, primary_key=True)
    paused = db.Column(db.Boolean, default=False, nullable=False)
    updated_by = db.Column(db.String(64), nullable=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
