from rest_framework.exceptions import APIException
from rest_framework import status


class PaymentNotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Оплату не знайдено.'
    default_code = 'payment_not_found'


class PaymentValidationError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Некоректні дані оплати.'
    default_code = 'payment_invalid'


class StudentNotInGroupError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Учень не навчається в цій групі.'
    default_code = 'student_not_in_group'
