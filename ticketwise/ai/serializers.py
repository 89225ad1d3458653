from rest_framework import serializers

from .models import AiConfiguration, AiSuggestion

EMPTY_SUGGESTION = {
    'summary': 'Sugestão não disponível',
    'confidence': 0,
    'step_by_step': [],
    'commands': [],
    'additional_notes': '',
    'estimated_time': 'N/A',
}


class AiSuggestionSerializer(serializers.ModelSerializer):
    """Suggestion in the shape the ticket screen renders"""
    ticket_id = serializers.IntegerField(source='ticket.id', read_only=True)
    success_rate = serializers.FloatField(read_only=True)
    confidence = serializers.FloatField(source='confidence_score', read_only=True)
    suggestion = serializers.SerializerMethodField()

    class Meta:
        model = AiSuggestion
        fields = ['id', 'ticket_id', 'similar_tickets_count', 'success_rate', 'confidence', 'suggestion',
                  'feedback_rating', 'created_at']

    def get_suggestion(self, obj):
        if isinstance(obj.structured_suggestion, dict) and obj.structured_suggestion:
            return obj.structured_suggestion
        return dict(EMPTY_SUGGESTION)


class GenerateSuggestionSerializer(serializers.Serializer):
    ticket_id = serializers.IntegerField(min_value=1)
    user_id = serializers.IntegerField(min_value=1, required=False)
    department_id = serializers.IntegerField(min_value=1)


class PriorityAnalysisSerializer(serializers.Serializer):
    ticket_id = serializers.IntegerField(min_value=1)
    apply = serializers.BooleanField(required=False, default=False)


class SuggestionFeedbackSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=1, max_value=5)
    comment = serializers.CharField(required=False, allow_blank=True, default='')


class AiConfigurationSerializer(serializers.ModelSerializer):
    department_name = serializers.CharField(source='department.name', read_only=True, default=None)

    class Meta:
        model = AiConfiguration
        fields = [
            'id', 'name', 'provider', 'model', 'api_endpoint', 'system_prompt', 'user_prompt_template',
            'temperature', 'max_tokens', 'timeout_seconds', 'max_retries', 'analysis_type', 'company',
            'department', 'department_name', 'is_active', 'is_default', 'created_at', 'updated_at'
        ]
        read_only_fields = ['company', 'created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Nome é obrigatório')
        return value

    def validate_max_tokens(self, value):
        if value < 1:
            raise serializers.ValidationError('max_tokens deve ser maior que zero')
        return value

    def validate(self, attrs):
        department = attrs.get('department')
        company_id = self.context.get('company_id')
        if self.instance is not None and company_id is None:
            company_id = self.instance.company_id
        if department is not None and department.company_id != company_id:
            raise serializers.ValidationError({'department': 'Departamento não pertence à empresa da configuração'})
        return attrs
