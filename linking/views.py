"""
API endpoints for link audits and internal link suggestions.
"""
import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from silos.models import Page, Silo

from .audit import audit_silo
from .models import LinkOccurrence
from .serializers import (
    AuditRequestSerializer, LinkOccurrenceSerializer, LinkSuggestionRequestSerializer, SiloAuditSerializer,
)
from .storage import latest_silo_audit
from .suggest import suggest_for_silo
from .throttling import LinkSuggestionRateThrottle

logger = logging.getLogger(__name__)


def _forbidden():
    return Response({
        'error': {'code': 'FORBIDDEN', 'message': 'Permission denied.', 'detail': None, 'status': 403}
    }, status=status.HTTP_403_FORBIDDEN)


def _invalid(message, detail):
    return Response({
        'error': {'code': 'INVALID_REQUEST', 'message': message, 'detail': detail, 'status': 400}
    }, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def silo_audit(request, silo_id):
    """
    GET  /api/v1/silos/{silo_id}/audit/: Last stored audit, or null when never audited.
    POST /api/v1/silos/{silo_id}/audit/: Run the audit.
    Body: { "force": false }
    """
    silo = get_object_or_404(Silo, id=silo_id)
    if silo.user != request.user:
        return _forbidden()

    if request.method == 'GET':
        stored = latest_silo_audit(silo)
        return Response({'data': SiloAuditSerializer(stored).data if stored else None})

    serializer = AuditRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid('Invalid audit request.', serializer.errors)

    result = audit_silo(silo, force_refresh=serializer.validated_data['force'])
    logger.info(
        "Audit requested by user %s for silo %s (cached=%s)",
        request.user.id, silo.id, result['cached'],
    )
    return Response({'data': result})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def link_audit_list(request):
    """
    GET /api/v1/link-audits/?page_id={page_id}: Outgoing links of a page with their audits.
    """
    page_id = request.query_params.get('page_id')
    if not page_id or not str(page_id).isdigit():
        return _invalid('page_id is required.', {'page_id': ['A valid integer is required.']})

    page = get_object_or_404(Page.objects.select_related('silo'), id=int(page_id))
    if page.silo.user != request.user:
        return _forbidden()

    occurrences = (
        LinkOccurrence.objects
        .filter(source_page=page)
        .select_related('audit')
        .order_by('start_index', 'id')
    )
    data = LinkOccurrenceSerializer(occurrences, many=True).data
    return Response({'data': data, 'meta': {'total': len(data), 'page_id': page.id}})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@throttle_classes([LinkSuggestionRateThrottle])
def link_suggestions(request):
    """
    POST /api/v1/link-suggestions/: Internal link suggestions for an article being edited.
    Body: { "silo_id", "page_id"?, "title"?, "keyword"?, "text", "existing_links"?, "max_suggestions"? }
    """
    serializer = LinkSuggestionRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid('Invalid link suggestion request.', serializer.errors)

    data = serializer.validated_data
    silo = get_object_or_404(Silo, id=data['silo_id'])
    if silo.user != request.user:
        return _forbidden()
    if data.get('page_id') is not None:
        get_object_or_404(Page, id=data['page_id'], silo=silo)

    result = suggest_for_silo(silo, data)
    return Response({'data': result})
