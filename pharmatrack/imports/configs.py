"""
Importable entity types: required/optional target fields and display labels.
"""

IMPORT_CONFIGS = {
    'medication': {
        'required': ['name', 'expiry_date', 'unit_price'],
        'optional': [
            'category', 'batch_number', 'current_stock', 'reorder_level',
            'selling_price', 'barcode_id', 'nafdac_reg_number', 'supplier',
            'location', 'manufacturing_date',
        ],
        'labels': {
            'name': 'Product Name',
            'category': 'Category',
            'batch_number': 'Batch Number',
            'current_stock': 'Stock Level',
            'reorder_level': 'Reorder Level',
            'expiry_date': 'Expiry Date',
            'manufacturing_date': 'Manufacturing Date',
            'unit_price': 'Purchase Price',
            'selling_price': 'Selling Price',
            'barcode_id': 'Barcode',
            'nafdac_reg_number': 'NAFDAC Reg No',
            'supplier': 'Supplier',
            'location': 'Location',
        },
    },
    'customer': {
        'required': ['full_name'],
        'optional': ['phone', 'email', 'date_of_birth', 'address', 'notes'],
        'labels': {
            'full_name': 'Patient Name',
            'phone': 'Phone Number',
            'email': 'Email',
            'date_of_birth': 'Date of Birth',
            'address': 'Address',
            'notes': 'Notes',
        },
    },
    'doctor': {
        'required': ['full_name'],
        'optional': ['phone', 'email', 'hospital_clinic', 'specialty', 'license_number', 'address', 'notes'],
        'labels': {
            'full_name': 'Doctor Name',
            'phone': 'Phone Number',
            'email': 'Email',
            'hospital_clinic': 'Hospital/Clinic',
            'specialty': 'Specialty',
            'license_number': 'License Number',
            'address': 'Address',
            'notes': 'Notes',
        },
    },
}

ENTITY_TYPES = list(IMPORT_CONFIGS.keys())

# Loose category spellings found in supplier sheets
CATEGORY_ALIASES = {
    'tablet': 'Tablet', 'tablets': 'Tablet',
    'syrup': 'Syrup', 'syrups': 'Syrup',
    'capsule': 'Capsule', 'capsules': 'Capsule',
    'injection': 'Injection', 'injections': 'Injection',
    'cream': 'Cream', 'creams': 'Cream',
    'drops': 'Drops', 'drop': 'Drops',
    'inhaler': 'Inhaler', 'inhalers': 'Inhaler',
    'powder': 'Powder', 'powders': 'Powder',
    'vitamins': 'Vitamins', 'vitamin': 'Vitamins',
    'supplements': 'Supplements', 'supplement': 'Supplements',
    'other': 'Other',
}


def get_target_fields(entity_type):
    config = IMPORT_CONFIGS[entity_type]
    return config['required'] + config['optional']


def get_label(entity_type, field):
    return IMPORT_CONFIGS[entity_type]['labels'].get(field, field)
