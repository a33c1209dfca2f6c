from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils


class Formula(db.Model):
    __tablename__ = 'formula'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    type = db.Column(db.String(32), nullable=False, default='Serum')
    description = db.Column(db.Text, nullable=True)
    total_weight = db.Column(db.Float, nullable=False, default=100.0)
    is_public = db.Column(db.Boolean, nullable=False, default=False)
    # Bumped on every successful write; used for optimistic concurrency on atomic saves
    version = db.Column(db.Integer, nullable=False, default=1)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now)
    updated_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, onupdate=TimezoneUtils.utc_now)

    ingredients = db.relationship(
        'FormulaIngredient',
        backref='formula',
        cascade='all, delete-orphan',
        order_by='FormulaIngredient.order',
    )
    steps = db.relationship(
        'ManufacturingStep',
        backref='formula',
        cascade='all, delete-orphan',
        order_by='ManufacturingStep.order',
    )

    def touch(self) -> None:
        self.version = (self.version or 0) + 1
        self.updated_at = TimezoneUtils.utc_now()

    def __repr__(self):
        return f'<Formula {self.id} {self.name}>'


class FormulaIngredient(db.Model):
    __tablename__ = 'formula_ingredient'
    __table_args__ = (
        db.UniqueConstraint('formula_id', 'ingredient_id', name='uq_formula_ingredient'),
    )
    id = db.Column(db.Integer, primary_key=True)
    formula_id = db.Column(db.Integer, db.ForeignKey('formula.id'), nullable=False)
    ingredient_id = db.Column(db.Integer, db.ForeignKey('ingredient.id'), nullable=False)
    percentage = db.Column(db.Float, nullable=False, default=0.0)
    order = db.Column(db.Integer, nullable=False, default=0)

    ingredient = db.relationship('Ingredient')


class ManufacturingStep(db.Model):
    __tablename__ = 'manufacturing_step'
    id = db.Column(db.Integer, primary_key=True)
    formula_id = db.Column(db.Integer, db.ForeignKey('formula.id'), nullable=False)
    order = db.Column(db.Integer, nullable=False, default=0)
    description = db.Column(db.Text, nullable=False, default='')
