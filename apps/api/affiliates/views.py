"""
Affiliate API Views
Thin DRF views over the affiliate services. Service errors carry a code that
maps to an HTTP status; attribution misses and replays are 200 responses.
"""

import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.request import Request
from rest_framework.response import Response

from apps.affiliates import types as affiliate_types
from apps.affiliates.attribution_service import AttributionService
from apps.affiliates.click_service import ClickService
from apps.affiliates.commission_service import CommissionService
from apps.affiliates.creator_service import CreatorService
from apps.affiliates.ledger_service import LedgerService
from apps.affiliates.link_service import LinkService
from apps.affiliates.tier_service import TierService
from apps.affiliates.types import AffiliateError
from apps.api.core import (
    AffiliateReadThrottle,
    AffiliateWriteThrottle,
    ClickThrottle,
    ConversionThrottle,
    IsAffiliateServiceOrStaff,
    IsStaffUser,
    StandardResultsSetPagination,
)

from .serializers import (
    ClickInputSerializer,
    ClickResultSerializer,
    CommissionFilterSerializer,
    CommissionStatusInputSerializer,
    CommissionTransactionSerializer,
    ConversionInputSerializer,
    CreatorFilterSerializer,
    CreatorMetricsSerializer,
    CreatorSerializer,
    CreatorStatusInputSerializer,
    LinkCreateInputSerializer,
    PayoutEligibilitySerializer,
    ProgramSummarySerializer,
    ReferralLinkSerializer,
    ReturnInputSerializer,
    SummaryFilterSerializer,
    TierResultSerializer,
)

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    affiliate_types.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    affiliate_types.CREATOR_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    affiliate_types.CREATOR_NOT_ELIGIBLE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    affiliate_types.ALIAS_TAKEN: status.HTTP_409_CONFLICT,
    affiliate_types.CODE_GENERATION_EXHAUSTED: status.HTTP_503_SERVICE_UNAVAILABLE,
    affiliate_types.LINK_UNAVAILABLE: status.HTTP_404_NOT_FOUND,
    affiliate_types.LINK_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    affiliate_types.TRANSACTION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    affiliate_types.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    affiliate_types.INTEGRITY_CONFLICT: status.HTTP_409_CONFLICT,
}


def error_response(error: AffiliateError) -> Response:
    payload = {'error': error.code, 'message': error.message, 'retryable': error.retryable}
    if error.field:
        payload['field'] = error.field
    return Response(payload, status=ERROR_STATUS.get(error.code, status.HTTP_400_BAD_REQUEST))


def invalid_input_response(errors: dict) -> Response:
    return Response({
        'error': affiliate_types.VALIDATION_ERROR,
        'message': 'Invalid input',
        'details': errors,
    }, status=status.HTTP_400_BAD_REQUEST)


# ===============================================================================
# WRITE ENDPOINTS (HTTP edge, checkout, staff)
# ===============================================================================


@api_view(['POST'])
@permission_classes([IsAffiliateServiceOrStaff])
@throttle_classes([AffiliateWriteThrottle])
def create_link(request: Request) -> Response:
    """Create a referral link for an approved creator."""
    input_serializer = LinkCreateInputSerializer(data=request.data)
    if not input_serializer.is_valid():
        return invalid_input_response(input_serializer.errors)

    data = input_serializer.validated_data
    result = LinkService.create_link(
        creator_id=data['creator_id'],
        original_url=data['original_url'],
        custom_alias=data.get('custom_alias') or None,
        title=data.get('title', ''),
        expires_at=data.get('expires_at'),
        description=data.get('description', ''),
    )
    if result.is_err():
        return error_response(result.unwrap_err())

    return Response(ReferralLinkSerializer(result.unwrap()).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAffiliateServiceOrStaff])
@throttle_classes([ClickThrottle])
def record_click(request: Request) -> Response:
    """Record a click forwarded by the HTTP edge and return the attribution token."""
    input_serializer = ClickInputSerializer(data=request.data)
    if not input_serializer.is_valid():
        return invalid_input_response(input_serializer.errors)

    data = input_serializer.validated_data
    result = ClickService.record_click(
        data['code'],
        ip_address=data['ip_address'],
        user_agent=data.get('user_agent', ''),
        referrer=data.get('referrer', ''),
        utm=input_serializer.get_utm(),
    )
    if result.is_err():
        return error_response(result.unwrap_err())

    return Response(ClickResultSerializer(result.unwrap()).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAffiliateServiceOrStaff])
@throttle_classes([ConversionThrottle])
def attribute_conversion(request: Request) -> Response:
    """Attribute an order-completed event; safe to deliver more than once."""
    input_serializer = ConversionInputSerializer(data=request.data)
    if not input_serializer.is_valid():
        return invalid_input_response(input_serializer.errors)

    data = input_serializer.validated_data
    link_id = data.get('link_id')
    result = AttributionService.attribute_conversion(
        order_id=data['order_id'],
        order_amount=data['order_amount'],
        session_id=data.get('session_id') or None,
        link_id=str(link_id) if link_id else None,
    )
    if result.is_err():
        return error_response(result.unwrap_err())

    outcome = result.unwrap()
    if outcome.status == 'attributed':
        payload = CommissionTransactionSerializer(outcome.transaction).data
        payload['outcome'] = outcome.status
        return Response(payload, status=status.HTTP_201_CREATED)

    if outcome.status == 'already_tracked':
        return Response({
            'outcome': outcome.status,
            'existing_transaction_id': str(outcome.transaction.pk),
            'transaction': CommissionTransactionSerializer(outcome.transaction).data,
        }, status=status.HTTP_200_OK)

    return Response({'outcome': outcome.status, 'reason': outcome.reason}, status=status.HTTP_200_OK)


@api_view(['POST'])
@permission_classes([IsAffiliateServiceOrStaff])
@throttle_classes([AffiliateWriteThrottle])
def update_commission_status(request: Request, transaction_id) -> Response:
    """Settlement transition of one commission transaction."""
    input_serializer = CommissionStatusInputSerializer(data=request.data)
    if not input_serializer.is_valid():
        return invalid_input_response(input_serializer.errors)

    data = input_serializer.validated_data
    result = CommissionService.update_status(transaction_id, data['status'], notes=data.get('notes', ''))
    if result.is_err():
        return error_response(result.unwrap_err())

    return Response(CommissionTransactionSerializer(result.unwrap()).data)


@api_view(['POST'])
@permission_classes([IsAffiliateServiceOrStaff])
@throttle_classes([ConversionThrottle])
def record_return(request: Request) -> Response:
    """Claw back commission for a returned order; replays hand back the first return."""
    input_serializer = ReturnInputSerializer(data=request.data)
    if not input_serializer.is_valid():
        return invalid_input_response(input_serializer.errors)

    data = input_serializer.validated_data
    result = CommissionService.record_return(
        order_id=data['order_id'],
        return_amount=data['return_amount'],
        reason=data.get('reason', ''),
    )
    if result.is_err():
        return error_response(result.unwrap_err())

    outcome = result.unwrap()
    payload = CommissionTransactionSerializer(outcome.transaction).data
    payload['outcome'] = outcome.status
    response_status = status.HTTP_201_CREATED if outcome.status == 'recorded' else status.HTTP_200_OK
    return Response(payload, status=response_status)


@api_view(['POST'])
@permission_classes([IsStaffUser])
@throttle_classes([AffiliateWriteThrottle])
def change_creator_status(request: Request, creator_id) -> Response:
    """Approve, suspend or deactivate a creator."""
    input_serializer = CreatorStatusInputSerializer(data=request.data)
    if not input_serializer.is_valid():
        return invalid_input_response(input_serializer.errors)

    data = input_serializer.validated_data
    result = CreatorService.change_status(creator_id, data['status'], notes=data.get('notes', ''))
    if result.is_err():
        return error_response(result.unwrap_err())

    return Response(CreatorSerializer(result.unwrap()).data)


@api_view(['POST'])
@permission_classes([IsStaffUser])
@throttle_classes([AffiliateWriteThrottle])
def recompute_tier(request: Request, creator_id) -> Response:
    """Recompute a creator's tier now instead of waiting for the daily sweep."""
    result = TierService.recompute_tier(creator_id)
    if result.is_err():
        return error_response(result.unwrap_err())

    tier_result = result.unwrap()
    if tier_result.changed:
        LedgerService.record_metrics(creator_id)
    return Response(TierResultSerializer(tier_result).data)


# ===============================================================================
# READ ENDPOINTS (staff)
# ===============================================================================


@api_view(['GET'])
@permission_classes([IsStaffUser])
@throttle_classes([AffiliateReadThrottle])
def creator_metrics(request: Request, creator_id) -> Response:
    """Cached metrics block plus the commission breakdown per status."""
    result = LedgerService.get_metrics(creator_id)
    if result.is_err():
        return error_response(result.unwrap_err())

    payload = CreatorMetricsSerializer(result.unwrap()).data
    breakdown = LedgerService.commission_breakdown(creator_id).unwrap_or({})
    payload['commission_breakdown'] = {
        name: {'count': entry['count'], 'amount': str(entry['amount'])} for name, entry in breakdown.items()
    }
    return Response(payload)


@api_view(['GET'])
@permission_classes([IsStaffUser])
@throttle_classes([AffiliateReadThrottle])
def creator_commissions(request: Request, creator_id) -> Response:
    """Paginated commission ledger of one creator, newest first."""
    filters = CommissionFilterSerializer(data=request.query_params)
    if not filters.is_valid():
        return invalid_input_response(filters.errors)

    result = LedgerService.list_transactions(
        creator_id,
        status=filters.validated_data.get('status'),
        date_from=filters.validated_data.get('date_from'),
        date_to=filters.validated_data.get('date_to'),
    )
    if result.is_err():
        return error_response(result.unwrap_err())

    paginator = StandardResultsSetPagination()
    page = paginator.paginate_queryset(result.unwrap(), request)
    serializer = CommissionTransactionSerializer(page, many=True)
    return paginator.get_paginated_response(serializer.data)


@api_view(['GET'])
@permission_classes([IsStaffUser])
@throttle_classes([AffiliateReadThrottle])
def payout_eligibility(request: Request, creator_id) -> Response:
    """Approved-but-unpaid commission against the creator's payout minimum."""
    result = LedgerService.check_payout_eligibility(creator_id)
    if result.is_err():
        return error_response(result.unwrap_err())

    return Response(PayoutEligibilitySerializer(result.unwrap()).data)


@api_view(['GET'])
@permission_classes([IsStaffUser])
@throttle_classes([AffiliateReadThrottle])
def list_creators(request: Request) -> Response:
    """Paginated creator list with status and search filters."""
    filters = CreatorFilterSerializer(data=request.query_params)
    if not filters.is_valid():
        return invalid_input_response(filters.errors)

    result = LedgerService.list_creators(
        status=filters.validated_data.get('status'),
        search=filters.validated_data.get('search'),
        ordering=filters.validated_data['ordering'],
    )
    if result.is_err():
        return error_response(result.unwrap_err())

    paginator = StandardResultsSetPagination()
    page = paginator.paginate_queryset(result.unwrap(), request)
    return paginator.get_paginated_response(CreatorSerializer(page, many=True).data)


@api_view(['GET'])
@permission_classes([IsStaffUser])
@throttle_classes([AffiliateReadThrottle])
def program_summary(request: Request) -> Response:
    """Program-wide commission totals and the top creators of a reporting window."""
    filters = SummaryFilterSerializer(data=request.query_params)
    if not filters.is_valid():
        return invalid_input_response(filters.errors)

    result = LedgerService.program_summary(
        date_from=filters.validated_data.get('date_from'),
        date_to=filters.validated_data.get('date_to'),
    )
    if result.is_err():
        return error_response(result.unwrap_err())

    return Response(ProgramSummarySerializer(result.unwrap()).data)
