from lms.db import Base
from sqlalchemy import Column, String, Uuid, ForeignKey
import uuid


"""
TeachingAssignments
| Column | Type | Notes |
| :--- | :--- | :--- |
| `id` | UUID | Primary Key |
| `teacher_id` | UUID | FK -> users (role TEACHER) |
| `subject_name` | VARCHAR | |
| `class_name` | VARCHAR | |

Rows are seeded by the school administration; exams hang off them and the
teacher here is the one who owns (and is notified about) the exam.
"""


class TeachingAssignment(Base):
    __tablename__ = "teaching_assignments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    teacher_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    subject_name = Column(String, nullable=False)
    class_name = Column(String, nullable=False)
