from .class_division import ClassDivision
from .student import Student
from .teacher_assignment import TeacherClassAssignment, AssignmentType
from .guardian_link import GuardianStudentLink

__all__ = ["ClassDivision", "Student", "TeacherClassAssignment", "AssignmentType", "GuardianStudentLink"]
