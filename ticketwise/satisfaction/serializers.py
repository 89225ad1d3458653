from rest_framework import serializers
from .models import SatisfactionSurvey


class SatisfactionSurveySerializer(serializers.ModelSerializer):
    ticket_number = serializers.CharField(source='ticket.ticket_id', read_only=True)
    ticket_title = serializers.CharField(source='ticket.title', read_only=True)

    class Meta:
        model = SatisfactionSurvey
        fields = ['id', 'ticket_id', 'ticket_number', 'ticket_title', 'customer_email', 'survey_token',
                  'sent_at', 'expires_at', 'status', 'rating', 'comments', 'responded_at']
        read_only_fields = fields


class SurveyResponseSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=1, max_value=5)
    comments = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        comments = (attrs.get('comments') or '').strip()
        if attrs['rating'] <= 2 and not comments:
            raise serializers.ValidationError(
                {'comments': 'Comentário é obrigatório para avaliações de 1 ou 2 estrelas'}
            )
        attrs['comments'] = comments
        return attrs
