from django.contrib.auth import get_user_model
from django.db.models import Q
from rest_framework import serializers
from .models import Customer

User = get_user_model()


def _login_taken(email, exclude_user_id=None):
    users = User.objects.filter(Q(email__iexact=email) | Q(username__iexact=email))
    if exclude_user_id is not None:
        users = users.exclude(pk=exclude_user_id)
    return users.exists()


class CustomerSerializer(serializers.ModelSerializer):
    sector_name = serializers.CharField(source='sector.name', read_only=True, default=None)
    user_id = serializers.IntegerField(source='user.id', read_only=True, default=None)
    has_user = serializers.SerializerMethodField()

    class Meta:
        model = Customer
        fields = [
            'id', 'name', 'email', 'phone', 'company_name', 'company', 'sector', 'sector_name',
            'user_id', 'has_user', 'avatar_url', 'is_active', 'created_at', 'updated_at'
        ]
        read_only_fields = ['company', 'created_at', 'updated_at']

    def get_has_user(self, obj):
        return obj.user_id is not None

    def validate_name(self, value):
        value = (value or '').strip()
        if not value:
            raise serializers.ValidationError('Nome é obrigatório')
        return value

    def validate_email(self, value):
        value = value.strip().lower()
        duplicates = Customer.objects.filter(email__iexact=value)
        if self.instance is not None:
            duplicates = duplicates.exclude(pk=self.instance.pk)
        if duplicates.exists():
            raise serializers.ValidationError('Já existe um cliente com este email')
        # The linked login takes the customer email as email and username
        if self.instance is not None and self.instance.user_id and _login_taken(value, self.instance.user_id):
            raise serializers.ValidationError('Já existe um usuário com este email')
        return value

    def validate_sector(self, value):
        company_id = self.context.get('company_id')
        if value is not None and company_id is not None and value.company_id != company_id:
            raise serializers.ValidationError('Setor não pertence a esta empresa')
        return value


class CustomerCreateSerializer(CustomerSerializer):
    """Customer payload that can also provision a login for the requester"""
    create_user = serializers.BooleanField(write_only=True, required=False, default=False)
    password = serializers.CharField(write_only=True, required=False, allow_blank=True, min_length=6)

    class Meta(CustomerSerializer.Meta):
        fields = CustomerSerializer.Meta.fields + ['create_user', 'password']

    def validate(self, attrs):
        if attrs.get('create_user') and not attrs.get('password'):
            raise serializers.ValidationError({'password': 'Senha é obrigatória para criar o acesso do cliente'})
        if attrs.get('create_user') and attrs.get('email') and _login_taken(attrs['email']):
            raise serializers.ValidationError({'email': 'Já existe um usuário com este email'})
        return attrs
