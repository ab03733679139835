from rest_framework import status
from rest_framework.exceptions import APIException


class EmployeeNotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Профіль співробітника не знайдено.'
    default_code = 'employee_not_found'


class EmployeeAlreadyExistsError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Користувач з такою електронною поштою вже існує.'
    default_code = 'employee_already_exists'


class StudentNotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Учня не знайдено.'
    default_code = 'student_not_found'


class TeacherNotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Викладача не знайдено.'
    default_code = 'teacher_not_found'
