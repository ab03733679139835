from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from user.models import User, Employee, Role
from user.api.exceptions import EmployeeAlreadyExistsError


class AdministratorRegistrationSerializer(serializers.ModelSerializer):
    email = serializers.EmailField(required=True, write_only=True)
    first_name = serializers.CharField(required=True, write_only=True, max_length=150)
    last_name = serializers.CharField(required=True, write_only=True, max_length=150)
    password = serializers.CharField(required=True, write_only=True, validators=[validate_password])
    password_confirm = serializers.CharField(required=True, write_only=True)
    
    full_name = serializers.CharField(required=True, max_length=255)
    
    class Meta:
        model = Employee
        fields = [
            'email', 'first_name', 'last_name', 'password', 'password_confirm',
            'full_name', 'phone', 'telegram_id'
        ]
    
    def validate_email(self, value):
        if User.objects.filter(email=value).exists():
            raise EmployeeAlreadyExistsError()
        return value
    
    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({
                'password_confirm': 'Паролі не збігаються.'
            })
        return attrs
    
    def create(self, validated_data):
        password = validated_data.pop('password')
        validated_data.pop('password_confirm')
        email = validated_data.pop('email')
        first_name = validated_data.pop('first_name')
        last_name = validated_data.pop('last_name')
        
        user = User.objects.create_user(
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name
        )
        
        employee = Employee._default_manager.create(  # type: ignore
            user=user,
            role=Role.ADMIN,
            **validated_data
        )
        
        return employee


class EmployeeProfileSerializer(serializers.ModelSerializer):
    email = serializers.EmailField(source='user.email', read_only=True)
    first_name = serializers.CharField(source='user.first_name', read_only=True)
    last_name = serializers.CharField(source='user.last_name', read_only=True)
    role_display = serializers.CharField(source='get_role_display', read_only=True)
    role = serializers.CharField(read_only=True)
    
    class Meta:
        model = Employee
        fields = [
            'id', 'public_id', 'email', 'first_name', 'last_name',
            'full_name', 'role', 'role_display',
            'phone', 'telegram_id', 'photo_url',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'public_id', 'role', 'created_at', 'updated_at']


class EmployeeLoginSerializer(serializers.Serializer):
    email = serializers.EmailField(required=True)
    password = serializers.CharField(required=True, write_only=True, style={'input_type': 'password'})
    
    def validate(self, attrs):
        email = attrs.get('email')
        password = attrs.get('password')
        
        user = User.objects.filter(email=email).first()
        if not user or not user.check_password(password):
            raise serializers.ValidationError({
                'email': 'Невірна електронна пошта або пароль.'
            })
        
        if not user.is_active:
            raise serializers.ValidationError({
                'email': 'Обліковий запис деактивовано.'
            })
        
        employee = getattr(user, 'employee_profile', None)
        if employee is None or not employee.is_active:
            raise serializers.ValidationError({
                'email': 'Для цього користувача не знайдено активного профілю співробітника.'
            })
        
        attrs['user'] = user
        attrs['employee'] = employee
        
        return attrs


class PasswordChangeSerializer(serializers.Serializer):
    old_password = serializers.CharField(required=True, write_only=True)
    new_password = serializers.CharField(required=True, write_only=True, validators=[validate_password])
    new_password_confirm = serializers.CharField(required=True, write_only=True)
    
    def validate_old_password(self, value):
        user = self.context['request'].user
        if not user.check_password(value):
            raise serializers.ValidationError('Поточний пароль невірний.')
        return value
    
    def validate(self, attrs):
        if attrs['new_password'] != attrs['new_password_confirm']:
            raise serializers.ValidationError({
                'new_password_confirm': 'Паролі не збігаються.'
            })
        return attrs
