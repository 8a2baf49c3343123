# api/procedures/serializers.py
from rest_framework import serializers

from api.patients.models import Paciente
from api.users.models import Usuario

from .domain import lifecycle
from .domain.estados import ProcedureStatus, SessionStatus
from .domain.fdi import FDIConstants, parse_tooth_fdi
from .domain.prosthesis import ProsthesisKind
from .models import (
    Assignment,
    Chair,
    PatientProcedure,
    Treatment,
    TreatmentSession,
    TreatmentSubclass,
    TreatmentSubclassOption,
)
from .services import mapper

SUPERFICIES = list(FDIConstants.SUPERFICIES.items())


class UsuarioBasicoSerializer(serializers.ModelSerializer):
    """Serializer simplificado para alumno/docente"""
    nombre_completo = serializers.SerializerMethodField()

    class Meta:
        model = Usuario
        fields = ['id', 'username', 'nombres', 'apellidos', 'nombre_completo', 'rol']

    def get_nombre_completo(self, obj):
        return obj.get_full_name()


class PacienteBasicoSerializer(serializers.ModelSerializer):
    nombre_completo = serializers.CharField(read_only=True)

    class Meta:
        model = Paciente
        fields = ['id', 'nombre_completo', 'cedula_pasaporte', 'edad', 'es_pediatrico']


# ==================== CATÁLOGO ====================

class ChairSerializer(serializers.ModelSerializer):
    class Meta:
        model = Chair
        fields = ['id', 'name', 'key', 'color', 'icon', 'active']


class TreatmentSubclassOptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = TreatmentSubclassOption
        fields = ['id', 'name']


class TreatmentSubclassSerializer(serializers.ModelSerializer):
    options = TreatmentSubclassOptionSerializer(many=True, read_only=True)

    class Meta:
        model = TreatmentSubclass
        fields = ['id', 'name', 'options']


class TreatmentSerializer(serializers.ModelSerializer):
    chair_detalle = ChairSerializer(source='chair', read_only=True)
    subclasses = TreatmentSubclassSerializer(many=True, read_only=True)

    class Meta:
        model = Treatment
        fields = [
            'id', 'chair', 'chair_detalle', 'name', 'code', 'description',
            'requires_tooth', 'estimated_sessions', 'active', 'subclasses',
        ]


# ==================== SESIONES ====================

class TreatmentSessionSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = TreatmentSession
        fields = [
            'id', 'assignment', 'session_number', 'session_date', 'notes',
            'status', 'status_display', 'created_by', 'fecha_creacion',
        ]


class TreatmentSessionCreateSerializer(serializers.Serializer):
    session_date = serializers.DateField()
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    status = serializers.ChoiceField(choices=SessionStatus.choices, default=SessionStatus.COMPLETADA)


class TreatmentSessionUpdateSerializer(serializers.Serializer):
    session_date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    status = serializers.ChoiceField(choices=SessionStatus.choices, required=False)


# ==================== ASIGNACIONES ====================

class AssignmentSerializer(serializers.ModelSerializer):
    student_detalle = UsuarioBasicoSerializer(source='student', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    sessions_total = serializers.IntegerField(source='patient_procedure.sessions_total', read_only=True)
    sessions_exceeded = serializers.SerializerMethodField()
    sessions = TreatmentSessionSerializer(many=True, read_only=True)

    class Meta:
        model = Assignment
        fields = [
            'id', 'patient_procedure', 'student', 'student_detalle', 'status', 'status_display',
            'sessions_completed', 'sessions_total', 'sessions_exceeded',
            'assigned_at', 'completed_at', 'abandoned_at',
            'notes', 'final_notes', 'abandon_reason', 'sessions',
        ]

    def get_sessions_exceeded(self, obj):
        return obj.sessions_completed > obj.patient_procedure.sessions_total


class MiAsignacionSerializer(AssignmentSerializer):
    """Asignación con el resumen del procedimiento, para la lista del alumno"""
    patient = PacienteBasicoSerializer(source='patient_procedure.patient', read_only=True)
    treatment_name = serializers.CharField(source='patient_procedure.treatment.name', read_only=True)
    teeth = serializers.SerializerMethodField()

    class Meta(AssignmentSerializer.Meta):
        fields = AssignmentSerializer.Meta.fields + ['patient', 'treatment_name', 'teeth']

    def get_teeth(self, obj):
        return list(obj.patient_procedure.teeth)


class CompleteAssignmentSerializer(serializers.Serializer):
    final_notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class AbandonAssignmentSerializer(serializers.Serializer):
    # El motor exige un motivo no vacío; aquí solo se recibe
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class SessionsTotalSerializer(serializers.Serializer):
    sessions_total = serializers.IntegerField()


# ==================== PROCEDIMIENTOS ====================

class PatientProcedureSerializer(serializers.ModelSerializer):
    """Serializer de salida del procedimiento con su asignación vigente"""
    treatment_detalle = TreatmentSerializer(source='treatment', read_only=True)
    chair_detalle = ChairSerializer(source='chair', read_only=True)
    created_by_detalle = UsuarioBasicoSerializer(source='created_by', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    teeth = serializers.SerializerMethodField()
    assignment = serializers.SerializerMethodField()
    sessions_completed = serializers.SerializerMethodField()
    sessions_exceeded = serializers.SerializerMethodField()
    capabilities = serializers.SerializerMethodField()

    class Meta:
        model = PatientProcedure
        fields = [
            'id', 'patient', 'treatment', 'treatment_detalle', 'treatment_subclass',
            'treatment_subclass_option', 'chair', 'chair_detalle',
            'tooth_fdi', 'teeth', 'tooth_surface', 'is_repair',
            'status', 'status_display', 'notes', 'contraindication_reason', 'priority',
            'sessions_total', 'sessions_completed', 'sessions_exceeded',
            'created_by', 'created_by_detalle', 'assignment', 'capabilities',
            'fecha_creacion', 'fecha_modificacion',
        ]

    def _snapshot(self, obj):
        cache = self.context.setdefault('_snapshots', {})
        if obj.pk not in cache:
            cache[obj.pk] = mapper.procedure_snapshot(obj)
        return cache[obj.pk]

    def get_teeth(self, obj):
        return list(obj.teeth)

    def get_assignment(self, obj):
        asignacion = mapper.asignacion_vigente(obj)
        if asignacion is None:
            return None
        return AssignmentSerializer(asignacion, context=self.context).data

    def get_sessions_completed(self, obj):
        return self._snapshot(obj).sessions_completed

    def get_sessions_exceeded(self, obj):
        return self._snapshot(obj).sessions_exceeded

    def get_capabilities(self, obj):
        """Acciones que el usuario actual puede intentar sobre el procedimiento"""
        request = self.context.get('request')
        if request is None or not request.user.is_authenticated:
            return None
        snapshot = self._snapshot(obj)
        actor = mapper.acting_user(request.user)
        return {
            'can_edit': lifecycle.can_edit(snapshot),
            'can_cancel': lifecycle.can_cancel(snapshot, actor),
            'is_creator': lifecycle.is_creator(snapshot, actor),
            'is_user_assigned': lifecycle.is_user_assigned(snapshot.active_assignment, actor),
        }


class _TeethInputMixin:
    """Acepta `teeth` como lista o `tooth_fdi` como texto separado por comas"""

    def validate(self, data):
        data = super().validate(data)
        tooth_fdi = data.pop('tooth_fdi', None)
        if 'teeth' not in data and tooth_fdi is not None:
            data['teeth'] = list(parse_tooth_fdi(tooth_fdi))
        return data


class PatientProcedureCreateSerializer(_TeethInputMixin, serializers.Serializer):
    patient = serializers.PrimaryKeyRelatedField(queryset=Paciente.objects.all())
    treatment = serializers.PrimaryKeyRelatedField(
        queryset=Treatment.objects.all(), required=False, allow_null=True
    )
    treatment_subclass = serializers.PrimaryKeyRelatedField(
        queryset=TreatmentSubclass.objects.all(), required=False, allow_null=True
    )
    treatment_subclass_option = serializers.PrimaryKeyRelatedField(
        queryset=TreatmentSubclassOption.objects.all(), required=False, allow_null=True
    )
    chair = serializers.PrimaryKeyRelatedField(queryset=Chair.objects.all(), required=False, allow_null=True)
    teeth = serializers.ListField(child=serializers.CharField(), required=False)
    tooth_fdi = serializers.CharField(required=False, allow_blank=True)
    tooth_surface = serializers.ChoiceField(choices=SUPERFICIES, required=False, allow_null=True)
    is_repair = serializers.BooleanField(required=False, default=False)
    status = serializers.ChoiceField(choices=ProcedureStatus.choices, required=False, default=ProcedureStatus.DISPONIBLE)
    auto_assign = serializers.BooleanField(required=False, default=False)
    assignment_notes = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    sessions_total = serializers.IntegerField(required=False, allow_null=True)
    priority = serializers.ChoiceField(choices=PatientProcedure.Priority.choices, required=False)
    contraindication_reason = serializers.CharField(required=False, allow_blank=True)


class PatientProcedureUpdateSerializer(_TeethInputMixin, serializers.Serializer):
    treatment = serializers.PrimaryKeyRelatedField(queryset=Treatment.objects.all(), required=False)
    treatment_subclass = serializers.PrimaryKeyRelatedField(
        queryset=TreatmentSubclass.objects.all(), required=False, allow_null=True
    )
    treatment_subclass_option = serializers.PrimaryKeyRelatedField(
        queryset=TreatmentSubclassOption.objects.all(), required=False, allow_null=True
    )
    chair = serializers.PrimaryKeyRelatedField(queryset=Chair.objects.all(), required=False)
    teeth = serializers.ListField(child=serializers.CharField(), required=False)
    tooth_fdi = serializers.CharField(required=False, allow_blank=True)
    tooth_surface = serializers.ChoiceField(choices=SUPERFICIES, required=False, allow_null=True)
    is_repair = serializers.BooleanField(required=False)
    status = serializers.ChoiceField(choices=ProcedureStatus.choices, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    sessions_total = serializers.IntegerField(required=False)
    priority = serializers.ChoiceField(choices=PatientProcedure.Priority.choices, required=False)
    contraindication_reason = serializers.CharField(required=False, allow_blank=True)


class ProsthesisCreateSerializer(serializers.Serializer):
    patient = serializers.PrimaryKeyRelatedField(queryset=Paciente.objects.all())
    kind = serializers.ChoiceField(choices=ProsthesisKind.choices)
    auto_assign = serializers.BooleanField(required=False, default=False)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
