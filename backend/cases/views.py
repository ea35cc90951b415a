"""
Cases app ViewSets.

Architecture: Views are intentionally thin.
Every view follows the strict three-step pattern:

    1. Parse / validate input via a serializer.
    2. Delegate all business logic to ``CaseIntakeService``.
    3. Serialize the result and return a DRF ``Response``.

Domain exceptions raised by the service layer (``AuthorizationError``,
``NoEligibleReceiver``, ``TransactionError`` …) are turned into HTTP
responses by ``core.domain.exception_handler``; no view catches them.
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from allocation.serializers import AllocationRecordSerializer

from .serializers import (
    CaseCreateSerializer,
    CaseDetailSerializer,
    CaseReassignSerializer,
    NextReceiverQuerySerializer,
    StaffSummarySerializer,
)
from .services import CaseIntakeService

logger = logging.getLogger(__name__)


class CaseViewSet(viewsets.ViewSet):
    """
    Intake endpoints for cases.

    Uses ``viewsets.ViewSet`` (not ``ModelViewSet``) so only the intake
    operations are exposed; listing and editing cases belong to the
    surrounding application.
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    @extend_schema(
        summary="Create a case and allocate it",
        description=(
            "Validate the draft, persist the case and choose its receiver "
            "(self-assignment or rotation) in one transaction."
        ),
        request=CaseCreateSerializer,
        responses={
            201: OpenApiResponse(response=CaseDetailSerializer, description="Case created and allocated."),
            400: OpenApiResponse(description="Validation error."),
            403: OpenApiResponse(description="Creator's role may not create this case type."),
            409: OpenApiResponse(description="No eligible receiver."),
            503: OpenApiResponse(description="Allocation could not be saved; nothing was written."),
        },
        tags=["Cases"],
    )
    def create(self, request: Request) -> Response:
        """POST /api/cases/"""
        serializer = CaseCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        case, _receiver = CaseIntakeService.allocate_on_create(
            serializer.validated_data, request.user,
        )
        out = CaseDetailSerializer(case, context={"request": request})
        return Response(out.data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="reassign")
    @extend_schema(
        summary="Reassign a case",
        description="Move the case to another active staff member. Appends a 'manual' allocation record.",
        request=CaseReassignSerializer,
        responses={
            201: OpenApiResponse(response=AllocationRecordSerializer, description="Reassignment recorded."),
            400: OpenApiResponse(description="Target inactive or already the receiver."),
            404: OpenApiResponse(description="Case not found."),
        },
        tags=["Cases - Allocation"],
    )
    def reassign(self, request: Request, pk: int = None) -> Response:
        """POST /api/cases/{id}/reassign/"""
        serializer = CaseReassignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        record = CaseIntakeService.manual_reassign(
            pk,
            serializer.validated_data["target_receiver"],
            request.user,
            serializer.validated_data["reason"],
        )
        return Response(AllocationRecordSerializer(record).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"], url_path="allocation-history")
    @extend_schema(
        summary="Allocation history",
        description="Every allocation of the case, oldest first.",
        responses={
            200: OpenApiResponse(response=AllocationRecordSerializer(many=True), description="Allocation records."),
            404: OpenApiResponse(description="Case not found."),
        },
        tags=["Cases - Allocation"],
    )
    def allocation_history(self, request: Request, pk: int = None) -> Response:
        """GET /api/cases/{id}/allocation-history/"""
        records = CaseIntakeService.get_allocation_history(pk)
        return Response(AllocationRecordSerializer(records, many=True).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="next-receiver")
    @extend_schema(
        summary="Next receiver in line",
        description="Who would receive the next case of this type if it arrived now. Read-only.",
        parameters=[
            OpenApiParameter(name="case_type", type=str, location=OpenApiParameter.QUERY, required=True, description="Case type value."),
        ],
        responses={
            200: OpenApiResponse(response=StaffSummarySerializer, description="Next receiver, or null if the pool is empty."),
        },
        tags=["Cases - Allocation"],
    )
    def next_receiver(self, request: Request) -> Response:
        """GET /api/cases/next-receiver/?case_type="""
        query = NextReceiverQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        receiver = CaseIntakeService.preview_next_receiver(query.validated_data["case_type"])
        data = StaffSummarySerializer(receiver).data if receiver is not None else None
        return Response({"receiver": data}, status=status.HTTP_200_OK)
