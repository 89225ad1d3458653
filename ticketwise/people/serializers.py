from django.contrib.auth import get_user_model
from rest_framework import serializers

from ticketwise.core.roles import ALL_ROLES, translate_role
from ticketwise.core.serializers import CompanySummarySerializer
from ticketwise.parties.models import Customer
from .services import get_requester, get_official

User = get_user_model()


class PersonSerializer(serializers.ModelSerializer):
    """A user with its requester and official sub-profiles"""
    role_text = serializers.SerializerMethodField()
    active = serializers.BooleanField(source='is_active', read_only=True)
    company = CompanySummarySerializer(read_only=True)
    is_requester = serializers.SerializerMethodField()
    is_official = serializers.SerializerMethodField()
    requester = serializers.SerializerMethodField()
    official = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'name', 'email', 'username', 'role', 'role_text', 'active', 'phone', 'company',
                  'is_requester', 'is_official', 'requester', 'official', 'created_at']

    def get_role_text(self, obj):
        return translate_role(obj.role)

    def get_is_requester(self, obj):
        return get_requester(obj) is not None

    def get_is_official(self, obj):
        official = get_official(obj)
        return official is not None and official.is_active

    def get_requester(self, obj):
        customer = get_requester(obj)
        if customer is None:
            return None
        return {
            'id': customer.id,
            'phone': customer.phone,
            'company_name': customer.company_name,
            'sector_id': customer.sector_id,
            'sector_name': customer.sector.name if customer.sector_id else None,
            'is_active': customer.is_active,
        }

    def get_official(self, obj):
        official = get_official(obj)
        if official is None:
            return None
        return {
            'id': official.id,
            'is_active': official.is_active,
            'supervisor_id': official.supervisor_id,
            'manager_id': official.manager_id,
            'departments': [d.name for d in official.departments.all()],
        }


class PersonWriteSerializer(serializers.Serializer):
    """Payload accepted by the people create and update endpoints"""
    name = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    username = serializers.CharField(max_length=150, required=False, allow_blank=True)
    password = serializers.CharField(required=False, allow_blank=True, write_only=True)
    role = serializers.ChoiceField(choices=ALL_ROLES, required=False)
    active = serializers.BooleanField(required=False)
    company_id = serializers.IntegerField(required=False, allow_null=True)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True, allow_null=True)
    is_requester = serializers.BooleanField(required=False)
    is_official = serializers.BooleanField(required=False)
    company_name = serializers.CharField(max_length=200, required=False, allow_blank=True, allow_null=True)
    sector_id = serializers.IntegerField(required=False, allow_null=True)
    departments = serializers.ListField(child=serializers.CharField(), required=False)
    supervisor_id = serializers.IntegerField(required=False, allow_null=True)
    manager_id = serializers.IntegerField(required=False, allow_null=True)

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Nome é obrigatório')
        return value

    def validate_email(self, value):
        return value.strip().lower()

    def validate_username(self, value):
        return value.strip()

    def validate_password(self, value):
        if value and len(value) < 6:
            raise serializers.ValidationError('Senha deve ter no mínimo 6 caracteres')
        return value

    def validate(self, attrs):
        instance = self.instance
        if 'username' in attrs and not attrs['username']:
            attrs.pop('username')
        if instance is None and not attrs.get('password'):
            raise serializers.ValidationError({'password': 'Senha é obrigatória e deve ter no mínimo 6 caracteres'})

        email = attrs.get('email')
        username = attrs.get('username') or (email if instance is None else None)
        users = User.objects.all()
        if instance is not None:
            users = users.exclude(pk=instance.pk)
        if email and users.filter(email__iexact=email).exists():
            raise serializers.ValidationError({'email': 'Email já está em uso'})
        if username and users.filter(username__iexact=username).exists():
            raise serializers.ValidationError({'username': 'Nome de usuário já existe'})
        link_email = email or (instance.email if instance is not None else None)
        if link_email and self._will_be_requester(attrs) and self._customer_email_taken(link_email):
            raise serializers.ValidationError({'email': 'Email já pertence a outro solicitante'})
        return attrs

    def _will_be_requester(self, attrs):
        if 'is_requester' in attrs:
            return attrs['is_requester']
        return self.instance is not None and get_requester(self.instance) is not None

    def _customer_email_taken(self, email):
        """Whether ``email`` belongs to a customer this person can not be linked to"""
        customers = Customer.objects.filter(email__iexact=email)
        requester = get_requester(self.instance) if self.instance is not None else None
        if requester is not None:
            return customers.exclude(pk=requester.pk).exists()
        return customers.filter(user__isnull=False).exists()
