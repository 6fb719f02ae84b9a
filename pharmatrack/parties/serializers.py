from rest_framework import serializers
from django.db import transaction
from pharmatrack.catalog.models import Medication
from .models import Customer, Doctor, Supplier, Prescription, PrescriptionItem
from .services import generate_prescription_number, save_prescription_items


class CustomerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = [
            'id', 'full_name', 'phone', 'email', 'date_of_birth', 'address',
            'loyalty_points', 'notes', 'metadata', 'created_at', 'updated_at'
        ]
        read_only_fields = ['loyalty_points', 'created_at', 'updated_at']

    def validate_full_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Full name is required')
        return value


class DoctorSerializer(serializers.ModelSerializer):
    class Meta:
        model = Doctor
        fields = [
            'id', 'full_name', 'phone', 'email', 'hospital_clinic', 'specialty',
            'license_number', 'address', 'notes', 'metadata', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_at', 'updated_at']


class SupplierSerializer(serializers.ModelSerializer):
    class Meta:
        model = Supplier
        fields = [
            'id', 'name', 'contact_person', 'phone', 'email', 'address', 'website',
            'payment_terms', 'notes', 'is_active', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        pharmacy = self.context.get('pharmacy')
        if pharmacy:
            queryset = Supplier.objects.filter(pharmacy=pharmacy, name__iexact=value)
            if self.instance:
                queryset = queryset.exclude(pk=self.instance.pk)
            if queryset.exists():
                raise serializers.ValidationError('A supplier with this name already exists')
        return value


class PrescriptionItemSerializer(serializers.ModelSerializer):
    medication = serializers.PrimaryKeyRelatedField(
        queryset=Medication.objects.all(), required=False, allow_null=True
    )

    class Meta:
        model = PrescriptionItem
        fields = ['id', 'medication', 'medication_name', 'dosage', 'frequency', 'duration', 'quantity',
                  'instructions', 'created_at']
        read_only_fields = ['created_at']

    def validate_quantity(self, value):
        if value < 1:
            raise serializers.ValidationError('Quantity must be at least 1')
        return value


class PrescriptionSerializer(serializers.ModelSerializer):
    customer = serializers.PrimaryKeyRelatedField(queryset=Customer.objects.all())
    doctor = serializers.PrimaryKeyRelatedField(queryset=Doctor.objects.all(), required=False, allow_null=True)
    customer_name = serializers.CharField(source='customer.full_name', read_only=True)
    doctor_name = serializers.CharField(source='doctor.full_name', read_only=True, default=None)
    refills_remaining = serializers.IntegerField(read_only=True)
    items = PrescriptionItemSerializer(many=True, required=False)

    class Meta:
        model = Prescription
        fields = [
            'id', 'prescription_number', 'customer', 'customer_name', 'doctor', 'doctor_name',
            'prescriber_name', 'prescriber_phone', 'diagnosis', 'notes', 'issue_date', 'expiry_date',
            'status', 'refill_count', 'max_refills', 'refills_remaining', 'last_refill_date',
            'next_refill_reminder', 'items', 'created_at', 'updated_at'
        ]
        read_only_fields = ['refill_count', 'last_refill_date', 'created_at', 'updated_at']
        extra_kwargs = {'prescription_number': {'required': False, 'allow_blank': True}}

    def _pharmacy(self):
        return self.context.get('pharmacy')

    def validate_customer(self, value):
        if value.pharmacy_id != self._pharmacy().id:
            raise serializers.ValidationError('Customer not found')
        return value

    def validate_doctor(self, value):
        if value is not None and value.pharmacy_id != self._pharmacy().id:
            raise serializers.ValidationError('Doctor not found')
        return value

    def validate_max_refills(self, value):
        if value < 0:
            raise serializers.ValidationError('Max refills cannot be negative')
        return value

    def validate_items(self, value):
        for item in value:
            medication = item.get('medication')
            if medication is not None and medication.pharmacy_id != self._pharmacy().id:
                raise serializers.ValidationError('Medication not found')
        return value

    def validate_prescription_number(self, value):
        value = (value or '').strip()
        if value:
            queryset = Prescription.objects.filter(pharmacy=self._pharmacy(), prescription_number=value)
            if self.instance:
                queryset = queryset.exclude(pk=self.instance.pk)
            if queryset.exists():
                raise serializers.ValidationError('A prescription with this number already exists')
        return value

    def validate(self, attrs):
        issue_date = attrs.get('issue_date', getattr(self.instance, 'issue_date', None))
        expiry_date = attrs.get('expiry_date', getattr(self.instance, 'expiry_date', None))
        if issue_date and expiry_date and expiry_date < issue_date:
            raise serializers.ValidationError({'expiry_date': 'Expiry date cannot be before the issue date'})
        max_refills = attrs.get('max_refills', getattr(self.instance, 'max_refills', 0))
        if self.instance and max_refills < self.instance.refill_count:
            raise serializers.ValidationError({'max_refills': 'Max refills cannot be below refills already used'})
        return attrs

    def create(self, validated_data):
        items = validated_data.pop('items', [])
        if not validated_data.get('prescription_number'):
            validated_data['prescription_number'] = generate_prescription_number(validated_data['pharmacy'])
        with transaction.atomic():
            prescription = Prescription.objects.create(**validated_data)
            save_prescription_items(prescription, items)
        return prescription

    def update(self, instance, validated_data):
        items = validated_data.pop('items', None)
        if 'prescription_number' in validated_data and not validated_data['prescription_number']:
            validated_data.pop('prescription_number')
        with transaction.atomic():
            instance = super().update(instance, validated_data)
            if items is not None:
                save_prescription_items(instance, items)
                instance._prefetched_objects_cache = {}
        return instance
