"""
Posting rule registry.

Manages registration and lookup of posting rules by document type.
"""

from ledger_kernel.domain.documents import Document, DocumentType
from ledger_kernel.domain.posting import PostingResult
from ledger_kernel.domain.resolution import AccountResolver
from ledger_kernel.exceptions import PostingRuleNotFoundError
from ledger_kernel.posting_rules.base import PostingRule


class PostingRuleRegistry:
    """
    Registry for posting rules.

    Allows registration and lookup of rules by document type.
    Supports versioning so historical documents can be re-derived with the
    rule that originally posted them.
    """

    def __init__(self):
        # document_type -> version -> rule
        self._rules: dict[DocumentType, dict[int, PostingRule]] = {}
        self._default_versions: dict[DocumentType, int] = {}

    def register(self, rule: PostingRule, set_default: bool = True) -> None:
        """
        Register a posting rule.

        Args:
            rule: The posting rule to register.
            set_default: If True, set this as the default version.
        """
        self._rules.setdefault(rule.document_type, {})[rule.version] = rule
        if set_default:
            self._default_versions[rule.document_type] = rule.version

    def get_rule(
        self,
        document_type: DocumentType,
        version: int | None = None,
    ) -> PostingRule:
        """
        Get a posting rule for a document type.

        Raises:
            PostingRuleNotFoundError: If no matching rule is registered.
        """
        versions = self._rules.get(document_type)
        if not versions:
            raise PostingRuleNotFoundError(document_type.value, version)

        if version is None:
            version = self._default_versions.get(document_type, max(versions))

        rule = versions.get(version)
        if rule is None:
            raise PostingRuleNotFoundError(document_type.value, version)
        return rule

    def build_entries(
        self,
        document: Document,
        resolver: AccountResolver | None = None,
        version: int | None = None,
    ) -> PostingResult:
        """
        Compute posting lines for a document.

        Convenience method that looks up the rule and builds the lines.

        Raises:
            PostingRuleNotFoundError: If no rule is registered for the type.
        """
        rule = self.get_rule(document.document_type, version)
        return rule.build_entries(document, resolver)

    def list_document_types(self) -> list[DocumentType]:
        return list(self._rules.keys())

    def list_versions(self, document_type: DocumentType) -> list[int]:
        return sorted(self._rules.get(document_type, {}).keys())


_default_registry = PostingRuleRegistry()


def get_default_registry() -> PostingRuleRegistry:
    """Get the default posting rule registry."""
    return _default_registry


def register_rule(rule: PostingRule, set_default: bool = True) -> None:
    """Register a rule in the default registry."""
    _default_registry.register(rule, set_default)
