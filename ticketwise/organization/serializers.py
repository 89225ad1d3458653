from rest_framework import serializers
from .models import Department, Sector, Official


class NamedEntitySerializer(serializers.ModelSerializer):
    """Shared name validation for departments and sectors"""

    def validate_name(self, value):
        value = (value or '').strip()
        if not value:
            raise serializers.ValidationError('Nome é obrigatório')
        return value


class DepartmentSerializer(NamedEntitySerializer):
    officials_count = serializers.SerializerMethodField()

    class Meta:
        model = Department
        fields = ['id', 'name', 'description', 'company', 'is_active', 'use_inventory_control',
                  'officials_count', 'created_at', 'updated_at']
        read_only_fields = ['company', 'created_at', 'updated_at']

    def get_officials_count(self, obj):
        return obj.officials.filter(is_active=True).count()

    def validate(self, attrs):
        company_id = self.context.get('company_id')
        if self.instance is not None and company_id is None:
            company_id = self.instance.company_id
        name = attrs.get('name')
        if name:
            duplicates = Department.objects.filter(company_id=company_id, name__iexact=name)
            if self.instance is not None:
                duplicates = duplicates.exclude(pk=self.instance.pk)
            if duplicates.exists():
                raise serializers.ValidationError({'name': 'Já existe um departamento com este nome'})
        return attrs


class SectorSerializer(NamedEntitySerializer):
    class Meta:
        model = Sector
        fields = ['id', 'name', 'description', 'company', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['company', 'created_at', 'updated_at']

    def validate_description(self, value):
        return (value or '').strip()


class DepartmentSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Department
        fields = ['id', 'name']


class OfficialSerializer(serializers.ModelSerializer):
    departments = DepartmentSummarySerializer(many=True, read_only=True)
    department_ids = serializers.ListField(child=serializers.CharField(), write_only=True, required=False)
    supervisor_name = serializers.CharField(source='supervisor.name', read_only=True, default=None)
    manager_name = serializers.CharField(source='manager.name', read_only=True, default=None)
    user_id = serializers.IntegerField(source='user.id', read_only=True, default=None)

    class Meta:
        model = Official
        fields = ['id', 'name', 'email', 'user_id', 'company', 'is_active', 'supervisor', 'supervisor_name',
                  'manager', 'manager_name', 'departments', 'department_ids', 'avatar_url',
                  'created_at', 'updated_at']
        read_only_fields = ['company', 'created_at', 'updated_at']

    def validate_name(self, value):
        value = (value or '').strip()
        if not value:
            raise serializers.ValidationError('Nome é obrigatório')
        return value

    def validate_email(self, value):
        return value.strip().lower()
