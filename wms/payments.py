"""Money in (cash/bank receipts against sales orders) and money out (payments against purchase orders)."""

from .errors import ValidationError
from .records import RecordService, to_number, today, utc_timestamp

PAYMENT_MODES = ('Cash', 'Bank Transfer', 'Credit Card', 'Check', 'Online Payment')


def migrate_transaction(trx):
    if trx.get('archived') is None:
        return dict(trx, archived=False)
    return trx


class TransactionService(RecordService):
    prefix = 'TRX'
    amount_field = None
    party_fields = ()
    document_fields = ()

    def _check_mode(self, mode):
        if mode not in PAYMENT_MODES:
            raise ValidationError(f'Invalid payment mode "{mode}". Expected one of: {", ".join(PAYMENT_MODES)}')

    def build(self, payload):
        record = {'trxDate': payload.get('trxDate') or today()}
        for field in self.party_fields + ('country', 'city') + self.document_fields:
            record[field] = str(payload.get(field, '') or '').strip()
        record['paymentMode'] = payload.get('paymentMode') or 'Cash'
        self._check_mode(record['paymentMode'])
        amount = to_number(payload.get(self.amount_field), 0)
        if amount < 0:
            raise ValidationError(f'{self.amount_field} cannot be negative')
        record[self.amount_field] = amount
        record['notes'] = payload.get('notes', '')
        record['createdAt'] = utc_timestamp()
        record['createdBy'] = payload.get('createdBy', '')
        record['archived'] = False
        return record

    def apply_changes(self, existing, changes):
        if 'paymentMode' in changes:
            self._check_mode(changes['paymentMode'])
        changes = {k: v for k, v in changes.items() if k not in ('createdAt', 'createdBy')}
        merged = super().apply_changes(existing, changes)
        merged[self.amount_field] = to_number(merged.get(self.amount_field), 0)
        merged['updatedAt'] = utc_timestamp()
        return merged

    def bulk_update_status(self, ids, status):
        raise ValidationError('Transactions have no status')

    def summary(self):
        transactions = self.list(archived='exclude')
        by_mode = {mode: 0 for mode in PAYMENT_MODES}
        for trx in transactions:
            mode = trx.get('paymentMode')
            by_mode[mode] = round(by_mode.get(mode, 0) + to_number(trx.get(self.amount_field), 0), 2)
        return {
            'count': len(transactions),
            'total': round(sum(by_mode.values()), 2),
            'byPaymentMode': by_mode,
        }


class CashBankService(TransactionService):
    collection = 'cash_bank_transactions'
    label = 'Transaction'
    amount_field = 'amountReceived'
    party_fields = ('customerId', 'customerName')
    document_fields = ('soId', 'invoiceNumber')


class PaymentService(TransactionService):
    collection = 'payment_transactions'
    label = 'Payment transaction'
    amount_field = 'amountPaid'
    party_fields = ('supplierId', 'supplierName')
    document_fields = ('poId', 'billNumber')
