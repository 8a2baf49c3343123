# api/procedures/views.py
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from api.permissions import TienePermisoPorRolConfigurable

from .models import Assignment, Chair, PatientProcedure, Treatment, TreatmentSession
from .repositories import ProcedimientoRepository
from .serializers import (
    AbandonAssignmentSerializer,
    AssignmentSerializer,
    ChairSerializer,
    CompleteAssignmentSerializer,
    MiAsignacionSerializer,
    PatientProcedureCreateSerializer,
    PatientProcedureSerializer,
    PatientProcedureUpdateSerializer,
    ProsthesisCreateSerializer,
    SessionsTotalSerializer,
    TreatmentSerializer,
    TreatmentSessionCreateSerializer,
    TreatmentSessionSerializer,
    TreatmentSessionUpdateSerializer,
)
from .services import AsignacionService, ProcedimientoService, SesionService
from .services.procedure_service import estados_de_procedimiento


def _usuario_ve_todo(user) -> bool:
    """Administrador y Docente ven todas las asignaciones; el alumno solo las suyas"""
    return getattr(user, 'rol', None) in ('Administrador', 'Docente')


class ProcedurePagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 200


# =============================================================================
# CATÁLOGO
# =============================================================================

class ChairViewSet(viewsets.ReadOnlyModelViewSet):
    """Cátedras activas"""
    queryset = Chair.objects.filter(active=True)
    serializer_class = ChairSerializer
    permission_classes = [IsAuthenticated, TienePermisoPorRolConfigurable]
    pagination_class = None


class TreatmentViewSet(viewsets.ReadOnlyModelViewSet):
    """Tratamientos activos, filtrables por cátedra (?chair=<id>)"""
    queryset = Treatment.objects.select_related('chair').prefetch_related('subclasses__options').filter(active=True)
    serializer_class = TreatmentSerializer
    permission_classes = [IsAuthenticated, TienePermisoPorRolConfigurable]
    pagination_class = None
    filter_backends = [DjangoFilterBackend, SearchFilter]
    filterset_fields = ['chair', 'requires_tooth']
    search_fields = ['name', 'code']


# =============================================================================
# PROCEDIMIENTOS
# =============================================================================

class PatientProcedureViewSet(mixins.ListModelMixin,
                              mixins.RetrieveModelMixin,
                              mixins.CreateModelMixin,
                              mixins.UpdateModelMixin,
                              viewsets.GenericViewSet):
    """
    Procedimientos del paciente.

    Las transiciones (asignar, cancelar) y la edición pasan por el motor
    clínico; los errores de dominio los convierte el exception handler.
    """
    queryset = PatientProcedure.objects.all()
    permission_classes = [IsAuthenticated, TienePermisoPorRolConfigurable]
    pagination_class = ProcedurePagination
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_fields = ['patient', 'status', 'chair', 'treatment']
    ordering_fields = ['fecha_creacion', 'status']
    ordering = ['-fecha_creacion']

    def get_queryset(self):
        return ProcedimientoRepository.base_queryset()

    def get_serializer_class(self):
        if self.action == 'create':
            return PatientProcedureCreateSerializer
        if self.action in ['update', 'partial_update']:
            return PatientProcedureUpdateSerializer
        return PatientProcedureSerializer

    def _respuesta(self, procedimiento, status_code=status.HTTP_200_OK):
        serializer = PatientProcedureSerializer(procedimiento, context=self.get_serializer_context())
        return Response(serializer.data, status=status_code)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = dict(serializer.validated_data)
        paciente = data.pop('patient')
        procedimiento = ProcedimientoService.crear(paciente.id, request.user, data)
        return self._respuesta(procedimiento, status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        instance = self.get_object()

        serializer = self.get_serializer(data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)

        procedimiento = ProcedimientoService.actualizar(instance.id, request.user, serializer.validated_data)
        return self._respuesta(procedimiento)

    @action(detail=True, methods=['post'])
    def assign(self, request, pk=None):
        """Reclama el procedimiento para el usuario actual"""
        instance = self.get_object()
        asignacion = ProcedimientoService.asignar(instance.id, request.user)
        asignacion = AsignacionService.obtener(asignacion.id)
        return Response(
            AssignmentSerializer(asignacion, context=self.get_serializer_context()).data,
            status=status.HTTP_201_CREATED
        )

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        """Cancela el procedimiento (solo su creador)"""
        instance = self.get_object()
        procedimiento = ProcedimientoService.cancelar(instance.id, request.user)
        return self._respuesta(procedimiento)

    @action(detail=False, methods=['post'])
    def prosthesis(self, request):
        """Crea una prótesis completa superior, inferior o total"""
        serializer = ProsthesisCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        datos = serializer.validated_data

        procedimiento = ProcedimientoService.crear_protesis(
            datos['patient'].id,
            datos['kind'],
            request.user,
            auto_assign=datos['auto_assign'],
            notes=datos['notes'],
        )
        return self._respuesta(procedimiento, status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'])
    def odontogram(self, request):
        """
        Odontograma del paciente: ?patient=<id>&status=<estado|all>&chair=<id|all>
        """
        paciente_id = request.query_params.get('patient')
        if not paciente_id:
            return Response(
                {'patient': ['Este parámetro es obligatorio.']},
                status=status.HTTP_400_BAD_REQUEST
            )
        datos = ProcedimientoService.odontograma(
            paciente_id,
            status=request.query_params.get('status'),
            chair_id=request.query_params.get('chair'),
        )
        return Response(datos)

    @action(detail=False, methods=['get'])
    def statuses(self, request):
        """Estados del procedimiento con sus colores"""
        return Response(estados_de_procedimiento())


# =============================================================================
# ASIGNACIONES Y SESIONES
# =============================================================================

class AssignmentViewSet(viewsets.ReadOnlyModelViewSet):
    """Asignaciones de alumnos y su libro de sesiones"""
    queryset = Assignment.objects.all()
    serializer_class = AssignmentSerializer
    permission_classes = [IsAuthenticated, TienePermisoPorRolConfigurable]
    pagination_class = ProcedurePagination
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['status', 'patient_procedure', 'student']

    def get_queryset(self):
        qs = Assignment.objects.select_related(
            'student', 'patient_procedure'
        ).prefetch_related('sessions').order_by('-assigned_at')
        if self.action == 'list' and not _usuario_ve_todo(self.request.user):
            qs = qs.filter(student=self.request.user)
        return qs

    def _respuesta(self, asignacion):
        return Response(AssignmentSerializer(asignacion, context=self.get_serializer_context()).data)

    @action(detail=False, methods=['get'])
    def mine(self, request):
        """Asignaciones activas y completadas del usuario actual"""
        asignaciones = AsignacionService.mis_asignaciones(request.user)
        page = self.paginate_queryset(asignaciones)
        if page is not None:
            serializer = MiAsignacionSerializer(page, many=True, context=self.get_serializer_context())
            return self.get_paginated_response(serializer.data)
        serializer = MiAsignacionSerializer(asignaciones, many=True, context=self.get_serializer_context())
        return Response(serializer.data)

    @action(detail=True, methods=['post'])
    def complete(self, request, pk=None):
        instance = self.get_object()
        serializer = CompleteAssignmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        asignacion = AsignacionService.completar(
            instance.id, request.user, serializer.validated_data.get('final_notes')
        )
        return self._respuesta(asignacion)

    @action(detail=True, methods=['post'])
    def abandon(self, request, pk=None):
        instance = self.get_object()
        serializer = AbandonAssignmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        asignacion = AsignacionService.abandonar(instance.id, request.user, serializer.validated_data['reason'])
        return self._respuesta(asignacion)

    @action(detail=True, methods=['patch'], url_path='sessions-total')
    def sessions_total(self, request, pk=None):
        instance = self.get_object()
        serializer = SessionsTotalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        asignacion = AsignacionService.ajustar_sesiones_totales(
            instance.id, request.user, serializer.validated_data['sessions_total']
        )
        return self._respuesta(asignacion)

    @action(detail=True, methods=['get', 'post'])
    def sessions(self, request, pk=None):
        """GET: sesiones ordenadas por número. POST: registra una sesión nueva."""
        instance = self.get_object()

        if request.method == 'GET':
            sesiones = SesionService.listar(instance.id)
            return Response(TreatmentSessionSerializer(sesiones, many=True).data)

        serializer = TreatmentSessionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        sesion = SesionService.crear(instance.id, request.user, **serializer.validated_data)
        return Response(TreatmentSessionSerializer(sesion).data, status=status.HTTP_201_CREATED)


class TreatmentSessionViewSet(mixins.RetrieveModelMixin,
                              mixins.UpdateModelMixin,
                              mixins.DestroyModelMixin,
                              viewsets.GenericViewSet):
    """Edición y borrado de sesiones individuales"""
    queryset = TreatmentSession.objects.select_related('assignment')
    permission_classes = [IsAuthenticated, TienePermisoPorRolConfigurable]

    def get_serializer_class(self):
        if self.action in ['update', 'partial_update']:
            return TreatmentSessionUpdateSerializer
        return TreatmentSessionSerializer

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        instance = self.get_object()

        serializer = self.get_serializer(data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)

        sesion = SesionService.actualizar(instance.id, request.user, dict(serializer.validated_data))
        return Response(TreatmentSessionSerializer(sesion).data)

    def destroy(self, request, *args, **kwargs):
        instance = self.get_object()
        asignacion = SesionService.eliminar(instance.id, request.user)
        return Response(
            {'id': str(instance.id), 'sessions_completed': asignacion.sessions_completed},
            status=status.HTTP_200_OK
        )
