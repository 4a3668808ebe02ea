# accounting/views.py
"""
Thin views that delegate to the registry and journal engine.

Views handle: HTTP parsing, tenant resolution, response formatting.
Commands handle: permissions, validation, locking, logging.

Every view resolves a SchemaContext from the URL's tenant id and the
authenticated user, then passes it explicitly. Serializers follow relations
(lines, parent, reversal) that live in the tenant's schema, so responses
are rendered inside ledger_transaction(ctx). For writes that is a second,
read-only transaction opened after the command has committed, so no lock
taken by the command is held while the response is built.
"""

from datetime import date

from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from ops.logging_config import get_logger
from tenant.context import SchemaContext, ledger_transaction, resolve_context

from .commands import (
    create_draft,
    delete_draft,
    get_entry,
    list_entries,
    post_entry,
    update_draft,
    void_entry,
)
from .exceptions import InvalidDate, LedgerError, LedgerValidationError
from .registry import (
    change_account_type,
    create_account,
    deactivate_account,
    get_account,
    list_accounts,
    reactivate_account,
    update_account,
)
from .serializers import (
    AccountCreateSerializer,
    AccountSerializer,
    AccountTypeChangeSerializer,
    AccountUpdateSerializer,
    JournalEntryCreateSerializer,
    JournalEntrySerializer,
    JournalEntryUpdateSerializer,
    JournalEntryVoidSerializer,
)


logger = get_logger("accounting")


def parse_date_param(request, name: str, default: date = None) -> date:
    """Read an optional YYYY-MM-DD query parameter."""
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return default
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise InvalidDate(name, raw)


class LedgerAPIView(APIView):
    """
    Base view for tenant-scoped ledger endpoints.

    LedgerError is answered as {"error": code, "detail": message, ...}
    with the error's status. Request body shape errors use the same
    envelope, with DRF's per-field messages under "fields". Missing
    tenants and permission failures fall through to DRF (404 / 403).
    """
    permission_classes = [IsAuthenticated]

    def get_context(self, request, tenant_id) -> SchemaContext:
        return resolve_context(tenant_id, request.user)

    def respond(self, ctx, serializer_class, instance, **kwargs) -> Response:
        with ledger_transaction(ctx):
            data = serializer_class(instance).data
        return Response(data, **kwargs)

    def handle_exception(self, exc):
        if isinstance(exc, ValidationError):
            exc = LedgerValidationError("Request body failed validation.", fields=exc.detail)
        if isinstance(exc, LedgerError):
            if exc.status_code >= 500:
                logger.error(
                    "ledger.request_failed",
                    extra={"path": self.request.path, "error": exc.code},
                )
            return Response(exc.as_dict(), status=exc.status_code)
        return super().handle_exception(exc)


# =============================================================================
# Account Views
# =============================================================================

class AccountListCreateView(LedgerAPIView):
    """
    GET /api/tenants/<tenant_id>/accounts/ -> list accounts (?active=true)
    POST /api/tenants/<tenant_id>/accounts/ -> create account
    """

    def get(self, request, tenant_id):
        ctx = self.get_context(request, tenant_id)
        active_only = request.query_params.get("active", "").lower() in ("1", "true", "yes")

        with ledger_transaction(ctx):
            accounts = list_accounts(ctx, active_only=active_only)
            data = AccountSerializer(accounts, many=True).data
        return Response(data)

    def post(self, request, tenant_id):
        ctx = self.get_context(request, tenant_id)

        input_serializer = AccountCreateSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        account = create_account(ctx, **input_serializer.validated_data)
        return self.respond(ctx, AccountSerializer, account, status=status.HTTP_201_CREATED)


class AccountDetailView(LedgerAPIView):
    """
    GET /api/tenants/<tenant_id>/accounts/<account_id>/ -> retrieve account
    PATCH /api/tenants/<tenant_id>/accounts/<account_id>/ -> rename / re-parent
    """

    def get(self, request, tenant_id, account_id):
        ctx = self.get_context(request, tenant_id)
        with ledger_transaction(ctx):
            account = get_account(ctx, account_id)
            data = AccountSerializer(account).data
        return Response(data)

    def patch(self, request, tenant_id, account_id):
        ctx = self.get_context(request, tenant_id)

        input_serializer = AccountUpdateSerializer(data=request.data, partial=True)
        input_serializer.is_valid(raise_exception=True)

        account = update_account(ctx, account_id, **input_serializer.validated_data)
        return self.respond(ctx, AccountSerializer, account)


class AccountDeactivateView(LedgerAPIView):
    """POST /api/tenants/<tenant_id>/accounts/<account_id>/deactivate/"""

    def post(self, request, tenant_id, account_id):
        ctx = self.get_context(request, tenant_id)
        account = deactivate_account(ctx, account_id)
        return self.respond(ctx, AccountSerializer, account)


class AccountReactivateView(LedgerAPIView):
    """POST /api/tenants/<tenant_id>/accounts/<account_id>/reactivate/"""

    def post(self, request, tenant_id, account_id):
        ctx = self.get_context(request, tenant_id)
        account = reactivate_account(ctx, account_id)
        return self.respond(ctx, AccountSerializer, account)


class AccountChangeTypeView(LedgerAPIView):
    """
    POST /api/tenants/<tenant_id>/accounts/<account_id>/change-type/

    Refused with 409 once any journal line references the account.
    """

    def post(self, request, tenant_id, account_id):
        ctx = self.get_context(request, tenant_id)

        input_serializer = AccountTypeChangeSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        account = change_account_type(
            ctx, account_id, input_serializer.validated_data["account_type"],
        )
        return self.respond(ctx, AccountSerializer, account)


# =============================================================================
# Journal Entry Views
# =============================================================================

class JournalEntryListCreateView(LedgerAPIView):
    """
    GET /api/tenants/<tenant_id>/journal-entries/ -> list entries
        ?status=DRAFT|POSTED|VOID&date_from=YYYY-MM-DD&date_to=YYYY-MM-DD
    POST /api/tenants/<tenant_id>/journal-entries/ -> create draft
    """

    def get(self, request, tenant_id):
        ctx = self.get_context(request, tenant_id)
        date_from = parse_date_param(request, "date_from")
        date_to = parse_date_param(request, "date_to")
        entry_status = request.query_params.get("status") or None

        with ledger_transaction(ctx):
            entries = list_entries(
                ctx, status=entry_status, date_from=date_from, date_to=date_to,
            )
            data = JournalEntrySerializer(entries, many=True).data
        return Response(data)

    def post(self, request, tenant_id):
        ctx = self.get_context(request, tenant_id)

        input_serializer = JournalEntryCreateSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        entry = create_draft(ctx, **input_serializer.validated_data)
        return self.respond(ctx, JournalEntrySerializer, entry, status=status.HTTP_201_CREATED)


class JournalEntryDetailView(LedgerAPIView):
    """
    GET /api/tenants/<tenant_id>/journal-entries/<entry_id>/ -> retrieve entry
    PATCH /api/tenants/<tenant_id>/journal-entries/<entry_id>/ -> edit draft
    DELETE /api/tenants/<tenant_id>/journal-entries/<entry_id>/ -> delete draft
    """

    def get(self, request, tenant_id, entry_id):
        ctx = self.get_context(request, tenant_id)
        with ledger_transaction(ctx):
            entry = get_entry(ctx, entry_id)
            data = JournalEntrySerializer(entry).data
        return Response(data)

    def patch(self, request, tenant_id, entry_id):
        ctx = self.get_context(request, tenant_id)

        input_serializer = JournalEntryUpdateSerializer(data=request.data, partial=True)
        input_serializer.is_valid(raise_exception=True)

        entry = update_draft(ctx, entry_id, **input_serializer.validated_data)
        return self.respond(ctx, JournalEntrySerializer, entry)

    def delete(self, request, tenant_id, entry_id):
        ctx = self.get_context(request, tenant_id)
        delete_draft(ctx, entry_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class JournalEntryPostView(LedgerAPIView):
    """
    POST /api/tenants/<tenant_id>/journal-entries/<entry_id>/post/

    Assigns the next entry number. Posting twice answers 409 already_posted.
    """

    def post(self, request, tenant_id, entry_id):
        ctx = self.get_context(request, tenant_id)
        entry = post_entry(ctx, entry_id)
        return self.respond(ctx, JournalEntrySerializer, entry)


class JournalEntryVoidView(LedgerAPIView):
    """
    POST /api/tenants/<tenant_id>/journal-entries/<entry_id>/void/ {"reason": "..."}

    Returns both the voided original and its posted reversal.
    """

    def post(self, request, tenant_id, entry_id):
        ctx = self.get_context(request, tenant_id)

        input_serializer = JournalEntryVoidSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = void_entry(ctx, entry_id, input_serializer.validated_data["reason"])
        with ledger_transaction(ctx):
            data = {
                "original": JournalEntrySerializer(result["original"]).data,
                "reversal": JournalEntrySerializer(result["reversal"]).data,
            }
        return Response(data)
