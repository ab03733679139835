from rest_framework.exceptions import APIException
from rest_framework import status


class GroupNotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Групу не знайдено.'
    default_code = 'group_not_found'


class CourseNotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Курс не знайдено.'
    default_code = 'course_not_found'


class LessonNotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Заняття не знайдено.'
    default_code = 'lesson_not_found'


class StudentNotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Учня не знайдено.'
    default_code = 'student_not_found'


class ScheduleValidationError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Некоректні параметри розкладу групи.'
    default_code = 'schedule_invalid'


class InvalidAttendanceStatusError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Невірний статус.'
    default_code = 'invalid_attendance_status'


class InvalidMakeupLessonError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = {'makeup_lesson_id': 'Заняття для відпрацювання не знайдено.'}
    default_code = 'invalid_makeup_lesson'


class LessonAlreadyCanceledError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Заняття вже скасовано.'
    default_code = 'lesson_already_canceled'


class LessonDateConflictError(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'На цю дату в групі вже є заняття.'
    default_code = 'lesson_date_conflict'


class LessonHasAttendanceError(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Неможливо видалити заняття: є записи відвідуваності.'
    default_code = 'lesson_has_attendance'


class GroupHasDependenciesError(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Неможливо видалити групу: є прив'язані учні, заняття або платежі."
    default_code = 'group_has_dependencies'


class StudentAlreadyInGroupError(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Учень вже є в цій групі.'
    default_code = 'student_already_in_group'


class MembershipNotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Учень не є активним учасником цієї групи.'
    default_code = 'membership_not_found'
