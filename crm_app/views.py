"""
CRM Django Views
================
Django views over the funnel/SLA engine.

Views read records from services.record_store, narrow them with
services.filter_composer and decorate them with services.stage_engine /
services.sla_clock. No KPI math or role branching happens here.
"""

import logging
from urllib.parse import urlencode

from django.contrib import messages
from django.contrib.auth import authenticate, login, logout
from django.contrib.auth.decorators import login_required
from django.http import Http404, HttpResponseForbidden, QueryDict
from django.shortcuts import redirect, render
from django.urls import reverse
from django.utils import timezone
from django.utils.http import url_has_allowed_host_and_scheme
from django.views.decorators.http import require_http_methods

from crm_app.access import require_access, role_for_user
from models.enums import FunnelType, TicketPriority, TicketStatus
from models.errors import InvalidStageError, StaleRecordError
from services import filter_composer, kpi_service, sla_clock, stage_engine
from services.filter_composer import RecordSchema
from services.record_store import get_record_store
from services.seed_data import OWNERS
from services.visibility import can_access, find_item, record_scope_for

logger = logging.getLogger(__name__)


# =============================================================================
# RECORD SCHEMAS (searchable / facet / date fields per entity)
# =============================================================================

DEAL_SCHEMA = RecordSchema(
    search_fields=('name', 'company'),
    facet_fields={'stage': 'stage_id', 'owner_id': 'owner_id'},
    date_field='expected_close_date',
)

LEAD_SCHEMA = RecordSchema(
    search_fields=('name', 'company', 'email'),
    facet_fields={'stage': 'stage_id', 'owner_id': 'owner_id'},
    date_field='created_at',
)

TICKET_SCHEMA = RecordSchema(
    search_fields=('subject', 'customer_name', 'customer_email'),
    facet_fields={'status': 'status', 'priority': 'priority', 'category': 'category'},
    date_field='created_at',
)

FUNNEL_FACETS = ('stage', 'owner_id')
TICKET_FACETS = ('status', 'priority', 'category')

# sort param -> record field
DEAL_SORTS = {'amount': 'amount', 'close': 'expected_close_date', 'name': 'name'}
TICKET_SORTS = {'deadline': 'sla_deadline', 'created': 'created_at'}

# Pages a transition may return to
TRANSITION_RETURN_PAGES = {
    FunnelType.DEAL: {'deals': 'deals', 'pipeline': 'pipeline'},
    FunnelType.LEAD: {'leads': 'leads'},
}

# Funnel -> nav item that grants transitions on it
FUNNEL_ITEM_CODES = {
    FunnelType.DEAL: 'sales.deals',
    FunnelType.LEAD: 'sales.leads',
}


# =============================================================================
# HELPERS
# =============================================================================

def _criteria_or_default(request, facet_names):
    """
    Criteria from the query string, scoped to the caller's role.
    A malformed date range is reported and dropped, the rest is kept.
    """
    try:
        criteria = filter_composer.criteria_from_query(request.GET, facet_names)
    except ValueError as e:
        messages.error(request, str(e))
        cleaned = request.GET.copy()
        cleaned.pop(filter_composer.FROM_PARAM, None)
        cleaned.pop(filter_composer.TO_PARAM, None)
        criteria = filter_composer.criteria_from_query(cleaned, facet_names)
    return criteria.with_role_scope(request.crm_role)


def _sort_params(request, sorts, default):
    sort = request.GET.get('sort', default)
    if sort not in sorts:
        sort = default
    descending = request.GET.get('dir', 'asc') == 'desc'
    return sort, descending


def _decorate_records(records, now):
    """Funnel records -> rows with stage, progress and overdue flag for templates."""
    return [
        {
            'record': r,
            'stage': stage_engine.get_stage(r.funnel_type, r.stage_id),
            'progress': stage_engine.progress(r),
            'overdue': stage_engine.is_overdue_for_stage(r, now),
            'owner_name': OWNERS.get(r.owner_id, r.owner_id or 'Unassigned'),
        }
        for r in records
    ]


def _decorate_tickets(tickets, now):
    rows = []
    for t in tickets:
        sla = sla_clock.ticket_sla(t, now)
        rows.append({
            'ticket': t,
            'sla': sla,
            'remaining_label': sla_clock.format_remaining(sla['remaining']),
            'assignee_name': OWNERS.get(t.assignee_id, 'Unassigned') if t.assignee_id else 'Unassigned',
        })
    return rows


def _funnel_or_404(funnel):
    try:
        return FunnelType(funnel.upper())
    except ValueError:
        raise Http404(f"Unknown funnel: {funnel}")


def _redirect_with_filters(page, raw_query):
    """
    Redirect back to a list page, keeping its filter state.

    The posted query is re-parsed and re-encoded, so only known filter
    parameters survive the round trip.
    """
    params = QueryDict(raw_query or '')
    facet_names = TICKET_FACETS if page == 'tickets' else FUNNEL_FACETS
    try:
        criteria = filter_composer.criteria_from_query(params, facet_names)
    except ValueError:
        return redirect(page)
    query = filter_composer.to_query_params(criteria)
    for extra in ('sort', 'dir'):
        if params.get(extra):
            query[extra] = params.get(extra)
    if query:
        return redirect(f"{reverse(page)}?{urlencode(query)}")
    return redirect(page)


# =============================================================================
# AUTH VIEWS
# =============================================================================

def login_view(request):
    """
    Login page - center-aligned card with username/password.
    POST: Authenticate and redirect to dashboard.
    """
    if request.user.is_authenticated:
        return redirect('dashboard')

    if request.method == 'POST':
        username = request.POST.get('username', '').strip()
        password = request.POST.get('password', '')

        user = authenticate(request, username=username, password=password)

        if user is not None:
            login(request, user)
            # SECURITY: Validate next URL to prevent open redirect attacks
            next_url = request.GET.get('next', '')
            if next_url and url_has_allowed_host_and_scheme(
                next_url,
                allowed_hosts={request.get_host()},
                require_https=request.is_secure()
            ):
                return redirect(next_url)
            return redirect('dashboard')
        else:
            messages.error(request, 'Invalid username or password')

    return render(request, 'crm_app/login.html')


@require_http_methods(["POST"])
def logout_view(request):
    """Logout and redirect to login page."""
    logout(request)
    return redirect('login')


# =============================================================================
# PAGE VIEWS
# =============================================================================

@require_access('overview.dashboard')
def dashboard_view(request):
    """
    Dashboard - pipeline and support KPIs the role is allowed to see.

    Sales numbers need the sales section, ticket numbers the support section.
    All numbers come from services.kpi_service.
    """
    role = request.crm_role
    store = get_record_store()
    now = timezone.now()
    scope = filter_composer.FilterCriteria().with_role_scope(role)

    context = {'show_sales': False, 'show_support': False}

    if can_access(role, 'sales'):
        deals = filter_composer.apply(
            store.list_funnel_records(FunnelType.DEAL), scope, DEAL_SCHEMA
        )
        leads = filter_composer.apply(
            store.list_funnel_records(FunnelType.LEAD), scope, LEAD_SCHEMA
        )
        overdue = kpi_service.overdue_records(deals, now)
        context.update({
            'show_sales': True,
            'deal_stats': kpi_service.pipeline_stats(deals),
            'lead_stats': kpi_service.pipeline_stats(leads),
            'deal_breakdown': kpi_service.stage_breakdown(deals, FunnelType.DEAL),
            'lead_breakdown': kpi_service.stage_breakdown(leads, FunnelType.LEAD),
            'overdue_deals': _decorate_records(overdue, now),
        })

    if can_access(role, 'support'):
        tickets = filter_composer.apply(store.list_tickets(), scope, TICKET_SCHEMA)
        context.update({
            'show_support': True,
            'ticket_summary': kpi_service.ticket_summary(tickets, now),
            'status_labels': TicketStatus.display_labels(),
        })

    return render(request, 'crm_app/dashboard.html', context)


def _funnel_list(request, funnel_type, schema, template, default_sort):
    store = get_record_store()
    now = timezone.now()
    criteria = _criteria_or_default(request, FUNNEL_FACETS)
    sort, descending = _sort_params(request, DEAL_SORTS, default_sort)

    records = filter_composer.apply(store.list_funnel_records(funnel_type), criteria, schema)
    records = filter_composer.sort_records(records, DEAL_SORTS[sort], descending=descending)

    query = filter_composer.to_query_params(criteria)
    context = {
        'rows': _decorate_records(records, now),
        'stats': kpi_service.pipeline_stats(records),
        'stages': stage_engine.list_stages(funnel_type),
        'owners': OWNERS,
        'funnel': funnel_type.value.lower(),
        'criteria': criteria,
        'current_text': criteria.text,
        'current_stages': criteria.facets.get('stage', frozenset()),
        'current_owners': criteria.facets.get('owner_id', frozenset()),
        'current_from': query.get(filter_composer.FROM_PARAM, ''),
        'current_to': query.get(filter_composer.TO_PARAM, ''),
        'current_sort': sort,
        'current_dir': 'desc' if descending else 'asc',
        'return_query': urlencode({**query, 'sort': sort, 'dir': 'desc' if descending else 'asc'}),
    }
    return render(request, template, context)


@require_access('sales.deals')
def deals_view(request):
    """
    Deals - filterable, sortable list.

    Query: q, stage, owner_id (comma-joined), from/to on expected close date,
    sort=amount|close|name, dir=asc|desc.
    """
    return _funnel_list(request, FunnelType.DEAL, DEAL_SCHEMA, 'crm_app/deals.html', 'close')


@require_access('sales.leads')
def leads_view(request):
    """Leads - same filters as deals; from/to apply to the created date."""
    return _funnel_list(request, FunnelType.LEAD, LEAD_SCHEMA, 'crm_app/leads.html', 'name')


@require_access('sales.pipeline')
def pipeline_view(request):
    """
    Pipeline board - one column per deal stage in stage order.
    Filters (q, owner_id, from/to) narrow every column.
    """
    store = get_record_store()
    now = timezone.now()
    criteria = _criteria_or_default(request, FUNNEL_FACETS)

    deals = filter_composer.apply(store.list_funnel_records(FunnelType.DEAL), criteria, DEAL_SCHEMA)
    deals = filter_composer.sort_records(deals, 'amount', descending=True)
    rows = _decorate_records(deals, now)

    columns = []
    for stage in stage_engine.list_stages(FunnelType.DEAL):
        stage_rows = [row for row in rows if row['record'].stage_id == stage.id]
        columns.append({
            'stage': stage,
            'rows': stage_rows,
            'total': sum((row['record'].amount for row in stage_rows), 0),
        })

    context = {
        'columns': columns,
        'stages': stage_engine.list_stages(FunnelType.DEAL),
        'owners': OWNERS,
        'current_text': criteria.text,
        'current_owners': criteria.facets.get('owner_id', frozenset()),
        'return_query': urlencode(filter_composer.to_query_params(criteria)),
    }
    return render(request, 'crm_app/pipeline.html', context)


@login_required
@require_http_methods(["POST"])
def transition_view(request, funnel, record_id):
    """
    Move a lead/deal to another stage.

    POST fields:
        stage        target stage id
        version      record version the form was rendered from
        probability  optional override (open stages only)
        return_to    list page to go back to
        return_query filter state of that page

    PRG pattern with Django messages. A version mismatch means someone else
    changed the record first; nothing is written.
    """
    funnel_type = _funnel_or_404(funnel)
    role = role_for_user(request.user)
    if not can_access(role, FUNNEL_ITEM_CODES[funnel_type]):
        return HttpResponseForbidden(f"Access denied: {FUNNEL_ITEM_CODES[funnel_type]}")

    pages = TRANSITION_RETURN_PAGES[funnel_type]
    page = pages.get(request.POST.get('return_to', ''), next(iter(pages.values())))
    return_query = request.POST.get('return_query', '')

    store = get_record_store()
    record = store.get_funnel_record(funnel_type, record_id)
    # Records outside the role scope are treated as missing
    if record is None or not record_scope_for(role)(record):
        raise Http404(f"{funnel_type.value} {record_id} not found")

    target = request.POST.get('stage', '').strip()
    raw_probability = request.POST.get('probability', '').strip()

    try:
        expected_version = int(request.POST.get('version', ''))
        probability = int(raw_probability) if raw_probability else None
        updated = stage_engine.transition(record, target, probability=probability)
        stored = store.save_transition(updated, expected_version, changed_by=request.user.username)
    except InvalidStageError as e:
        messages.error(request, str(e))
        return _redirect_with_filters(page, return_query)
    except StaleRecordError as e:
        logger.warning(f"Rejected transition by {request.user.username}: {e}")
        messages.warning(request, f'"{record.name}" was changed by someone else. Reload and try again.')
        return _redirect_with_filters(page, return_query)
    except ValueError as e:
        messages.error(request, f'Invalid transition: {e}')
        return _redirect_with_filters(page, return_query)

    stage = stage_engine.get_stage(funnel_type, stored.stage_id)
    messages.success(request, f'"{stored.name}" moved to {stage.label}')
    return _redirect_with_filters(page, return_query)


@require_access('support.tickets')
def tickets_view(request):
    """
    Tickets - SLA status per ticket.

    Query: q, status, priority, category (comma-joined), from/to on created
    date, sort=deadline|created, dir=asc|desc. Resolved/closed tickets show
    the SLA as it stood when they were resolved.
    """
    store = get_record_store()
    now = timezone.now()
    criteria = _criteria_or_default(request, TICKET_FACETS)
    sort, descending = _sort_params(request, TICKET_SORTS, 'deadline')

    tickets = filter_composer.apply(store.list_tickets(), criteria, TICKET_SCHEMA)
    tickets = filter_composer.sort_records(tickets, TICKET_SORTS[sort], descending=descending)

    query = filter_composer.to_query_params(criteria)
    context = {
        'rows': _decorate_tickets(tickets, now),
        'summary': kpi_service.ticket_summary(tickets, now),
        'statuses': TicketStatus.choices(),
        'status_labels': TicketStatus.display_labels(),
        'priorities': TicketPriority.choices(),
        'current_text': criteria.text,
        'current_statuses': criteria.facets.get('status', frozenset()),
        'current_priorities': criteria.facets.get('priority', frozenset()),
        'current_from': query.get(filter_composer.FROM_PARAM, ''),
        'current_to': query.get(filter_composer.TO_PARAM, ''),
        'current_sort': sort,
        'current_dir': 'desc' if descending else 'asc',
    }
    return render(request, 'crm_app/tickets.html', context)


@login_required
def section_view(request, section, item):
    """
    Placeholder page for navigation items without a dedicated screen.
    Unknown items are 404, items the role cannot reach are 403.
    """
    entry = find_item(section, item)
    if entry is None:
        raise Http404(f"No page {section}/{item}")

    code = f"{section}.{item}"
    if not can_access(role_for_user(request.user), code):
        return HttpResponseForbidden(f"Access denied: {code}")

    return render(request, 'crm_app/section.html', {'entry': entry})
