from rest_framework import serializers

from ticketwise.core.serializers import mask_secret
from .models import EmailConfig, EmailTemplate, UserNotificationSettings
from .templating import TEMPLATE_TYPES

MASK_PREFIX = '*' * 8
API_PROVIDERS = ('brevo', 'sendgrid', 'mailgun')


def is_masked(value):
    return not value or value.startswith(MASK_PREFIX)


class EmailConfigSerializer(serializers.ModelSerializer):
    password = serializers.CharField(required=False, allow_blank=True, write_only=True)
    api_key = serializers.CharField(required=False, allow_blank=True, write_only=True)

    class Meta:
        model = EmailConfig
        fields = ['id', 'company', 'provider', 'host', 'port', 'username', 'password', 'api_key',
                  'from_email', 'from_name', 'use_tls', 'updated_at']
        read_only_fields = ['company', 'updated_at']

    def to_representation(self, instance):
        data = super().to_representation(instance)
        data['password'] = mask_secret(instance.password)
        data['api_key'] = mask_secret(instance.api_key)
        return data

    def validate(self, attrs):
        instance = self.instance
        # Empty or masked secrets keep what is stored
        for secret in ('password', 'api_key'):
            if secret in attrs and is_masked(attrs[secret]):
                attrs.pop(secret)

        provider = attrs.get('provider', instance.provider if instance else 'smtp')
        host = attrs.get('host', instance.host if instance else '')
        api_key = attrs.get('api_key', instance.api_key if instance else '')

        if provider == 'smtp' and not host:
            raise serializers.ValidationError({'host': 'Servidor SMTP é obrigatório'})
        if provider in API_PROVIDERS and not api_key:
            raise serializers.ValidationError({'api_key': f'API key é obrigatória para o provedor {provider}'})
        return attrs


class EmailTemplateSerializer(serializers.ModelSerializer):
    type_label = serializers.SerializerMethodField()

    class Meta:
        model = EmailTemplate
        fields = ['id', 'name', 'type', 'type_label', 'description', 'subject_template', 'html_template',
                  'text_template', 'is_active', 'is_default', 'company', 'created_by', 'updated_by',
                  'created_at', 'updated_at']
        read_only_fields = ['company', 'created_by', 'updated_by', 'created_at', 'updated_at']

    def get_type_label(self, obj):
        return TEMPLATE_TYPES.get(obj.type, obj.type)

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Nome é obrigatório')
        return value

    def validate_type(self, value):
        if value not in TEMPLATE_TYPES:
            raise serializers.ValidationError('Tipo de template inválido')
        return value


class TemplatePreviewSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=list(TEMPLATE_TYPES.keys()), required=False)
    subject_template = serializers.CharField(required=False, allow_blank=True, default='')
    html_template = serializers.CharField(required=False, allow_blank=True, default='')
    text_template = serializers.CharField(required=False, allow_blank=True, default='')


class UserNotificationSettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = UserNotificationSettings
        exclude = ['user']
        read_only_fields = ['created_at', 'updated_at']

    def validate(self, attrs):
        instance = self.instance
        start = attrs.get('notification_hours_start', instance.notification_hours_start if instance else 9)
        end = attrs.get('notification_hours_end', instance.notification_hours_end if instance else 18)
        if end <= start:
            raise serializers.ValidationError(
                {'notification_hours_end': 'Horário final deve ser maior que o horário inicial'}
            )
        return attrs
