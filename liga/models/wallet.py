from datetime import datetime, timezone

from liga import db


class Wallet(db.Model):
    __tablename__ = "wallets"

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), primary_key=True)
    balance = db.Column(db.Float, nullable=False, default=0.0)
    currency = db.Column(db.String(3), nullable=False, default="ARS")

    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self):
        return f"<Wallet user_id={self.user_id} balance={self.balance}>"

    @staticmethod
    def increment(user_id, delta, currency="ARS"):
        """Add delta to the user's balance in a single UPDATE, creating the wallet if needed"""
        updated = Wallet.query.filter_by(user_id=user_id).update(
            {Wallet.balance: Wallet.balance + delta}, synchronize_session=False
        )
        if not updated:
            db.session.add(Wallet(user_id=user_id, balance=delta, currency=currency))
            db.session.flush()


class WalletTransaction(db.Model):
    """Immutable ledger entry"""

    __tablename__ = "wallet_transactions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="ARS")
    reason = db.Column(db.String(30), nullable=False)  # 'payout', ...

    # A prediction is credited at most once
    prediction_id = db.Column(
        db.Integer, db.ForeignKey("predictions.id"), nullable=True, unique=True
    )
    meta = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.Index("idx_wallet_tx_user", "user_id"),
        db.Index("idx_wallet_tx_created", "created_at"),
    )

    def __repr__(self):
        return f"<WalletTransaction {self.reason} {self.amount} user_id={self.user_id}>"
