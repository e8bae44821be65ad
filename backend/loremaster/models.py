from datetime import datetime, timezone

from loremaster import db


def _utcnow():
    return datetime.now(timezone.utc)


class TriviaQuestion(db.Model):
    __tablename__ = 'trivia_questions'
    id = db.Column(db.Integer, primary_key=True)
    question = db.Column(db.Text, nullable=False)
    correct_answer = db.Column(db.String(255), nullable=False)
    wrong_answer1 = db.Column(db.String(255), nullable=False)
    wrong_answer2 = db.Column(db.String(255), nullable=False)
    wrong_answer3 = db.Column(db.String(255), nullable=False)
    category_id = db.Column(db.String(100), nullable=False, index=True)
    difficulty = db.Column(db.String(50), default='Medium', index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    @property
    def choices(self):
        return [self.correct_answer, self.wrong_answer1, self.wrong_answer2, self.wrong_answer3]

    def to_dict(self):
        return {
            'id': self.id,
            'question': self.question,
            'choices': self.choices,
            'correctAnswer': self.correct_answer,
            'categoryId': self.category_id,
            'difficulty': self.difficulty,
        }


class QuestionCategory(db.Model):
    __tablename__ = 'question_categories'
    id = db.Column(db.String(100), primary_key=True)
    name = db.Column(db.String(100), nullable=True)
    description = db.Column(db.Text, nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name or self.id,
            'description': self.description,
        }


class TriviaSettings(db.Model):
    __tablename__ = 'trivia_settings'
    broadcaster_id = db.Column(db.String(100), primary_key=True)
    answer_time_ms = db.Column(db.Integer, nullable=True)
    interval_ms = db.Column(db.Integer, nullable=True)
    active_categories = db.Column(db.JSON, nullable=True, default=list)
    active_difficulties = db.Column(db.JSON, nullable=True, default=lambda: ['Easy', 'Medium', 'Hard'])

    def to_dict(self):
        return {
            'broadcaster_id': self.broadcaster_id,
            'answer_time_ms': self.answer_time_ms,
            'interval_ms': self.interval_ms,
            'active_categories': self.active_categories or [],
            'active_difficulties': self.active_difficulties or [],
        }


class UserScore(db.Model):
    __tablename__ = 'user_scores'
    user_id = db.Column(db.String(100), primary_key=True)
    username = db.Column(db.String(255), nullable=True)
    score = db.Column(db.Integer, nullable=False, default=0)
    last_updated = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            'userId': self.user_id,
            'username': self.username,
            'score': self.score,
            'lastUpdated': self.last_updated.isoformat() if self.last_updated else None,
        }
