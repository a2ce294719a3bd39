"""
API endpoints for silo hierarchy management.
"""
import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .hierarchy import HierarchyRow, normalize_hierarchy, validate_structure
from .models import Silo, Page, SiloPage
from .serializers import SiloSerializer, PageListSerializer, HierarchyPayloadSerializer

logger = logging.getLogger(__name__)


def _get_silo_or_error(request, silo_id):
    silo = get_object_or_404(Silo, id=silo_id)
    if silo.user != request.user:
        return None, Response({
            'error': {'code': 'FORBIDDEN', 'message': 'Permission denied.', 'detail': None, 'status': 403}
        }, status=status.HTTP_403_FORBIDDEN)
    return silo, None


def _serialize_hierarchy(silo):
    pages = list(Page.objects.filter(silo=silo))
    rows = [
        HierarchyRow.from_row(row)
        for row in SiloPage.objects.filter(silo=silo).values('page_id', 'role', 'position')
    ]
    hierarchy = normalize_hierarchy(pages, rows)
    page_data = {p['id']: p for p in PageListSerializer(pages, many=True).data}

    items = []
    for page in pages:
        entry = hierarchy.get(page.id)
        items.append({
            **page_data[page.id],
            'role': entry.role if entry else None,
            'ordinal': entry.ordinal if entry else None,
            'support_index': entry.support_index if entry else None,
        })
    items.sort(key=lambda item: (
        ('PILLAR', 'SUPPORT', 'AUX').index(item['role']) if item['role'] else 3,
        item['ordinal'] or 0,
    ))

    return {
        'silo_id': str(silo.id),
        'pillar_id': hierarchy.pillar_id,
        'pages': items,
        'structure_warnings': validate_structure(hierarchy),
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def silo_list(request):
    """GET /api/v1/silos/: List silos owned by the current user."""
    silos = Silo.objects.filter(user=request.user).order_by('name')
    data = SiloSerializer(silos, many=True).data
    return Response({'data': data, 'meta': {'total': len(data)}})


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated])
def silo_hierarchy(request, silo_id):
    """
    GET /api/v1/silos/{silo_id}/hierarchy/: Normalized hierarchy + structure warnings.
    PUT /api/v1/silos/{silo_id}/hierarchy/: Replace raw role/position rows.
    Body: { "pages": [ {"page_id": 1, "role": "PILLAR", "position": 1}, ... ] }
    """
    silo, err = _get_silo_or_error(request, silo_id)
    if err:
        return err

    if request.method == 'PUT':
        serializer = HierarchyPayloadSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({
                'error': {'code': 'INVALID_REQUEST', 'message': 'Invalid hierarchy payload.',
                          'detail': serializer.errors, 'status': 400}
            }, status=status.HTTP_400_BAD_REQUEST)

        updates = serializer.validated_data['pages']
        page_ids = set(Page.objects.filter(silo=silo).values_list('id', flat=True))
        unknown = [row['page_id'] for row in updates if row['page_id'] not in page_ids]
        if unknown:
            return Response({
                'error': {'code': 'INVALID_REQUEST', 'message': 'Pages do not belong to this silo.',
                          'detail': {'page_ids': unknown}, 'status': 400}
            }, status=status.HTTP_400_BAD_REQUEST)

        with transaction.atomic():
            for row in updates:
                SiloPage.objects.update_or_create(
                    page_id=row['page_id'],
                    defaults={
                        'silo': silo,
                        'role': row.get('role'),
                        'position': row.get('position'),
                    },
                )
        logger.info("Hierarchy updated for silo %s (%d rows)", silo.id, len(updates))

    return Response({'data': _serialize_hierarchy(silo)})
