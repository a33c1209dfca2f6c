from ..extensions import db


class Ingredient(db.Model):
    """Catalog ingredient referenced by formula lines. Read-only to the formula engine."""

    __tablename__ = 'ingredient'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    inci_name = db.Column(db.String(256), nullable=True)
    phase = db.Column(db.String(64), nullable=True)
    function = db.Column(db.String(64), nullable=True)
    recommended_max_percentage = db.Column(db.Float, nullable=True)
    is_allergen = db.Column(db.Boolean, nullable=False, default=False)

    def __repr__(self):
        return f'<Ingredient {self.name}>'
