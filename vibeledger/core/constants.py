from enum import Enum


class TransactionStatusEnum(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

class TransactionTypeEnum(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    RECHARGE_BY_ADMIN = "RechargeByAdmin"
    RECHARGE = "Recharge"
    REGISTRATION_FEE = "Registration_fee"
    CALL = "Call"
    PACKAGE_BUY = "Package_Buy"

CREDIT_TRANSACTION_TYPES = frozenset({
    TransactionTypeEnum.DEPOSIT,
    TransactionTypeEnum.RECHARGE_BY_ADMIN,
    TransactionTypeEnum.RECHARGE,
})

DEBIT_TRANSACTION_TYPES = frozenset({
    TransactionTypeEnum.WITHDRAW,
    TransactionTypeEnum.REGISTRATION_FEE,
    TransactionTypeEnum.CALL,
    TransactionTypeEnum.PACKAGE_BUY,
})

# pending is the only non-final status
ALLOWED_TRANSACTION_TRANSITIONS = {
    TransactionStatusEnum.PENDING: {TransactionStatusEnum.COMPLETED, TransactionStatusEnum.FAILED},
    TransactionStatusEnum.COMPLETED: set(),
    TransactionStatusEnum.FAILED: set(),
}

class LedgerDirectionEnum(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"

class WalletEffectOutcomeEnum(str, Enum):
    APPLIED = "applied"
    WALLET_MISSING = "wallet_missing"
    ALREADY_APPLIED = "already_applied"

class DebitPolicyEnum(str, Enum):
    REJECT = "reject"
    CLAMP = "clamp"

class PlanDurationEnum(str, Enum):
    MONTHLY = "Monthly"
    ANNUALLY = "Annually"

class DisbursementStatusEnum(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSED = "processed"

ALLOWED_DISBURSEMENT_TRANSITIONS = {
    DisbursementStatusEnum.PENDING: {DisbursementStatusEnum.APPROVED, DisbursementStatusEnum.REJECTED},
    DisbursementStatusEnum.APPROVED: {DisbursementStatusEnum.PROCESSED, DisbursementStatusEnum.REJECTED},
    DisbursementStatusEnum.REJECTED: set(),
    DisbursementStatusEnum.PROCESSED: set(),
}

class CampaignDisplayStatusEnum(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    PENDING_APPROVAL = "Pending Approval"

class LedgerEventEnum(str, Enum):
    TRANSACTION_CREATED = "transaction.created"
    TRANSACTION_COMPLETED = "transaction.completed"
    TRANSACTION_FAILED = "transaction.failed"
    WALLET_UPDATED = "wallet.updated"
    SUBSCRIPTION_ACTIVATED = "subscription.activated"
    CAMPAIGN_FUNDED = "campaign.funded"
    DISBURSEMENT_UPDATED = "disbursement.updated"

PLAN_REFERENCE_PREFIX = "PLAN"
WALLET_PAYMENT_METHOD = "wallet"
