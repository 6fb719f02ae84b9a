from rest_framework import serializers
from .configs import ENTITY_TYPES


class ImportRequestSerializer(serializers.Serializer):
    entity_type = serializers.ChoiceField(choices=ENTITY_TYPES, default='medication')
    file = serializers.FileField(required=False)
    content = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
    branch = serializers.IntegerField(required=False, allow_null=True)

    def validate(self, attrs):
        if not attrs.get('file') and not attrs.get('content'):
            raise serializers.ValidationError('Upload a CSV file or send its content')
        upload = attrs.get('file')
        if upload and not upload.name.lower().endswith(('.csv', '.txt')):
            raise serializers.ValidationError({'file': 'Only CSV files are supported'})
        return attrs


class InvoiceScanSerializer(serializers.Serializer):
    image_base64 = serializers.CharField(required=False, allow_blank=False)
    image = serializers.ImageField(required=False)

    def validate(self, attrs):
        if not attrs.get('image_base64') and not attrs.get('image'):
            raise serializers.ValidationError('No invoice image provided')
        return attrs
