from rest_framework import serializers
from .models import User, Company, SystemSetting, AuditLog
from .roles import translate_role


class CompanySerializer(serializers.ModelSerializer):
    class Meta:
        model = Company
        fields = ['id', 'name', 'email', 'domain', 'cnpj', 'phone', 'active',
                  'ai_permission', 'uses_flexible_sla', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Nome é obrigatório')
        return value


class CompanySummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Company
        fields = ['id', 'name', 'domain']


class UserSerializer(serializers.ModelSerializer):
    role_text = serializers.SerializerMethodField()
    company = CompanySummarySerializer(read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'name', 'role', 'role_text', 'company', 'phone',
                  'avatar_url', 'ad_user', 'must_change_password', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def get_role_text(self, obj):
        return translate_role(obj.role)


SECRET_KEY_MARKERS = ('token', 'password', 'secret', 'api_key')


def mask_secret(value):
    if not value:
        return value
    return f"{'*' * 8}{value[-4:]}" if len(value) > 4 else '*' * 8


class SystemSettingSerializer(serializers.ModelSerializer):
    class Meta:
        model = SystemSetting
        fields = ['id', 'key', 'value', 'description', 'company', 'updated_at']
        read_only_fields = ['updated_at']
        # Upserted by (key, company) in the view
        validators = []

    def to_representation(self, instance):
        data = super().to_representation(instance)
        if any(marker in instance.key for marker in SECRET_KEY_MARKERS):
            data['value'] = mask_secret(instance.value)
        return data


class AuditLogSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'company', 'action', 'model_name', 'object_id', 'object_name',
                  'changes', 'ip_address', 'created_at']
