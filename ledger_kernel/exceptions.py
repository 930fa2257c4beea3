"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A failed posting must tell the caller exactly what went wrong: which account
role is missing, by how much a batch is out of balance, which rate was bad.
Callers catch by type and read structured attributes; they never parse
message strings.

Every exception:
  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes

Example:
    try:
        approvals.approve(invoice, actor_id)
    except MissingAccountConfigurationError as e:
        api_response(code=e.code, role=e.role, line=e.line)
    except UnbalancedBatchError as e:
        api_response(code=e.code, delta=str(e.delta))

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from LedgerKernelError:

    LedgerKernelError (base)
    |
    +-- TenantError
    |   +-- InvalidTenantError
    |
    +-- ConfigurationError
    |   +-- MissingAccountConfigurationError
    |
    +-- PostingError
    |   +-- UnbalancedBatchError
    |   +-- EmptyBatchError
    |   +-- PostingRuleNotFoundError
    |   +-- BatchNotFoundError
    |
    +-- ConversionError
    |   +-- InvalidRateError
    |   +-- InvalidCurrencyError
    |   +-- ExchangeRateNotFoundError
    |
    +-- PersistenceError
    |
    +-- AccountError
    |   +-- AccountNotFoundError
    |   +-- AccountInactiveError
    |   +-- DuplicateAccountCodeError
    |   +-- AccountHierarchyCycleError
    |
    +-- ReversalError
    |   +-- BatchAlreadyReversedError
    |   +-- BatchNotReversibleError
    |
    +-- DocumentError
        +-- DocumentNotFoundError
        +-- DocumentStatusError
        +-- InvalidDocumentError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                           | When Raised
----------------|--------------------------------|------------------------------------
Tenant          | INVALID_TENANT                 | Tenant id missing or not a UUID
----------------|--------------------------------|------------------------------------
Configuration   | MISSING_ACCOUNT_CONFIGURATION  | Mandatory account role unresolved
----------------|--------------------------------|------------------------------------
Posting         | UNBALANCED_BATCH               | Debits != credits beyond tolerance
                | EMPTY_BATCH                    | Batch with no lines
                | POSTING_RULE_NOT_FOUND         | No rule for document type
                | BATCH_NOT_FOUND                | Batch id unknown for the tenant
----------------|--------------------------------|------------------------------------
Conversion      | INVALID_RATE                   | Rate missing, <= 0 or non-finite
                | INVALID_CURRENCY               | Not a valid ISO 4217 code
                | EXCHANGE_RATE_NOT_FOUND        | No rate on or before the date
----------------|--------------------------------|------------------------------------
Persistence     | PERSISTENCE_ERROR              | Storage/transaction failure
----------------|--------------------------------|------------------------------------
Account         | ACCOUNT_NOT_FOUND              | Unknown account or other tenant
                | ACCOUNT_INACTIVE               | Posting to an inactive account
                | DUPLICATE_ACCOUNT_CODE         | Code already used in the tenant
                | ACCOUNT_HIERARCHY_CYCLE        | Parent assignment creates a cycle
----------------|--------------------------------|------------------------------------
Reversal        | BATCH_ALREADY_REVERSED         | Batch already has a reversal
                | BATCH_NOT_REVERSIBLE           | Batch is itself a reversal
----------------|--------------------------------|------------------------------------
Document        | DOCUMENT_NOT_FOUND             | Document not registered
                | DOCUMENT_STATUS                | Transition not allowed
                | INVALID_DOCUMENT               | Document fields inconsistent

===============================================================================
HANDLING NOTES
===============================================================================

Every exception here is fatal to the triggering document action. The kernel
never retries: a financial write retried without deduplication can post
twice. Retrying is the caller's decision.

===============================================================================
"""


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Tenant


class TenantError(LedgerKernelError):
    """Base exception for tenant scoping errors."""

    code: str = "TENANT_ERROR"


class InvalidTenantError(TenantError):
    """Tenant id is missing or malformed."""

    code: str = "INVALID_TENANT"

    def __init__(self, value: object):
        self.value = None if value is None else str(value)
        super().__init__(f"Tenant id is required and must be a valid UUID, got {value!r}")


# Configuration


class ConfigurationError(LedgerKernelError):
    """Base exception for account configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class MissingAccountConfigurationError(ConfigurationError):
    """A mandatory account role could not be resolved for a document line."""

    code: str = "MISSING_ACCOUNT_CONFIGURATION"

    def __init__(self, role: str, line: str):
        self.role = role
        self.line = line
        super().__init__(f"No {role} account configured for {line}")


# Posting


class PostingError(LedgerKernelError):
    """Base exception for posting errors."""

    code: str = "POSTING_ERROR"


class UnbalancedBatchError(PostingError):
    """Batch debits and credits differ by more than the tolerance."""

    code: str = "UNBALANCED_BATCH"

    def __init__(
        self,
        total_debit: str,
        total_credit: str,
        delta: str,
        reference_number: str | None = None,
    ):
        self.total_debit = total_debit
        self.total_credit = total_credit
        self.delta = delta
        self.reference_number = reference_number
        target = f" for {reference_number}" if reference_number else ""
        super().__init__(
            f"Unbalanced batch{target}: debits={total_debit}, "
            f"credits={total_credit}, delta={delta}"
        )


class EmptyBatchError(PostingError):
    """A batch must contain at least one line."""

    code: str = "EMPTY_BATCH"

    def __init__(self, reference_number: str):
        self.reference_number = reference_number
        super().__init__(f"No posting lines produced for {reference_number}")


class PostingRuleNotFoundError(PostingError):
    """No posting rule is registered for a document type."""

    code: str = "POSTING_RULE_NOT_FOUND"

    def __init__(self, document_type: str, version: int | None = None):
        self.document_type = document_type
        self.version = version
        suffix = f" (version {version})" if version is not None else ""
        super().__init__(f"No posting rule for document type: {document_type}{suffix}")


class BatchNotFoundError(PostingError):
    """Posting batch does not exist within the tenant."""

    code: str = "BATCH_NOT_FOUND"

    def __init__(self, batch_id: str, tenant_id: str):
        self.batch_id = batch_id
        self.tenant_id = tenant_id
        super().__init__(f"Posting batch {batch_id} not found for tenant {tenant_id}")


# Conversion


class ConversionError(LedgerKernelError):
    """Base exception for currency conversion errors."""

    code: str = "CONVERSION_ERROR"


class InvalidRateError(ConversionError):
    """Exchange rate is missing, non-positive, or non-finite."""

    code: str = "INVALID_RATE"

    def __init__(self, rate: object):
        self.rate = None if rate is None else str(rate)
        super().__init__(f"Exchange rate must be a finite positive number, got {rate!r}")


class InvalidCurrencyError(ConversionError):
    """Invalid ISO 4217 currency code provided."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: '{currency}'")


class ExchangeRateNotFoundError(ConversionError):
    """No exchange rate effective on or before the requested date."""

    code: str = "EXCHANGE_RATE_NOT_FOUND"

    def __init__(self, from_currency: str, to_currency: str, as_of: str):
        self.from_currency = from_currency
        self.to_currency = to_currency
        self.as_of = as_of
        super().__init__(
            f"No exchange rate found for {from_currency}/{to_currency} as of {as_of}"
        )


# Persistence


class PersistenceError(LedgerKernelError):
    """Storage or transaction failure while writing ledger data."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Persistence failure during {operation}: {detail}")


# Accounts


class AccountError(LedgerKernelError):
    """Base exception for account errors."""

    code: str = "ACCOUNT_ERROR"


class AccountNotFoundError(AccountError):
    """Account does not exist within the tenant."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str, tenant_id: str):
        self.account_id = account_id
        self.tenant_id = tenant_id
        super().__init__(f"Account {account_id} not found for tenant {tenant_id}")


class AccountInactiveError(AccountError):
    """Account is not active for posting."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_id: str, account_code: str):
        self.account_id = account_id
        self.account_code = account_code
        super().__init__(f"Account {account_code} is inactive")


class DuplicateAccountCodeError(AccountError):
    """Account code already exists within the tenant."""

    code: str = "DUPLICATE_ACCOUNT_CODE"

    def __init__(self, account_code: str, tenant_id: str):
        self.account_code = account_code
        self.tenant_id = tenant_id
        super().__init__(f"Account code {account_code} already exists for tenant {tenant_id}")


class AccountHierarchyCycleError(AccountError):
    """Assigning the parent would make the account its own ancestor."""

    code: str = "ACCOUNT_HIERARCHY_CYCLE"

    def __init__(self, account_id: str, parent_id: str):
        self.account_id = account_id
        self.parent_id = parent_id
        super().__init__(
            f"Setting parent {parent_id} on account {account_id} would create a cycle"
        )


# Reversals


class ReversalError(LedgerKernelError):
    """Base exception for reversal errors."""

    code: str = "REVERSAL_ERROR"


class BatchAlreadyReversedError(ReversalError):
    """Posting batch already has a reversal."""

    code: str = "BATCH_ALREADY_REVERSED"

    def __init__(self, batch_id: str, reversal_batch_id: str):
        self.batch_id = batch_id
        self.reversal_batch_id = reversal_batch_id
        super().__init__(
            f"Posting batch {batch_id} already reversed by {reversal_batch_id}"
        )


class BatchNotReversibleError(ReversalError):
    """Posting batch cannot be reversed."""

    code: str = "BATCH_NOT_REVERSIBLE"

    def __init__(self, batch_id: str, reason: str):
        self.batch_id = batch_id
        self.reason = reason
        super().__init__(f"Posting batch {batch_id} cannot be reversed: {reason}")


# Documents


class DocumentError(LedgerKernelError):
    """Base exception for document workflow errors."""

    code: str = "DOCUMENT_ERROR"


class DocumentNotFoundError(DocumentError):
    """Document is not registered for the tenant."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: str, tenant_id: str):
        self.document_id = document_id
        self.tenant_id = tenant_id
        super().__init__(f"Document {document_id} not found for tenant {tenant_id}")


class DocumentStatusError(DocumentError):
    """Document status does not allow the requested action."""

    code: str = "DOCUMENT_STATUS"

    def __init__(self, document_id: str, status: str, action: str):
        self.document_id = document_id
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} document {document_id} with status {status}")


class InvalidDocumentError(DocumentError):
    """Document fields are inconsistent or out of range."""

    code: str = "INVALID_DOCUMENT"

    def __init__(self, reference_number: str, reason: str):
        self.reference_number = reference_number
        self.reason = reason
        super().__init__(f"Invalid document {reference_number}: {reason}")
