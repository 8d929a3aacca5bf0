from datetime import datetime

from slugify import slugify

from bookwell import db


class EventType(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(120), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=True)
    duration_min = db.Column(db.Integer, nullable=False, default=30)
    # NULL means "use the host's default buffer"
    buffer_before = db.Column(db.Integer, nullable=True)
    buffer_after = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    host = db.relationship('User')

    @staticmethod
    def generate_slug(name: str) -> str:
        base = slugify(name) or 'meeting'
        slug = base
        i = 1
        while EventType.query.filter_by(slug=slug).first() is not None:
            i += 1
            slug = f"{base}-{i}"
        return slug

    def effective_buffers(self, rules) -> tuple:
        before = self.buffer_before if self.buffer_before is not None else rules.default_buffer_before
        after = self.buffer_after if self.buffer_after is not None else rules.default_buffer_after
        return before or 0, after or 0

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'description': self.description,
            'duration': self.duration_min,
            'bufferBefore': self.buffer_before,
            'bufferAfter': self.buffer_after,
            'isActive': self.is_active,
        }
