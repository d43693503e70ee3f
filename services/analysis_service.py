from typing import Dict, Iterable
from collections import defaultdict

from database.models import TransactionModel

class AnalysisService:
    def summarize(self, transactions: Iterable[TransactionModel]) -> Dict:
        """
        Income/expense totals, balance and expenses grouped by category
        """
        totals = {'income': 0.0, 'expense': 0.0}
        by_category = defaultdict(float)
        categories = {}

        for transaction in transactions:
            totals[transaction.type] += transaction.amount
            if transaction.type != 'expense':
                continue
            by_category[transaction.category_id] += transaction.amount
            categories[transaction.category_id] = transaction.category

        total_expenses = totals['expense']
        expenses_by_category = []
        for category_id, total in by_category.items():
            category = categories[category_id]
            expenses_by_category.append({
                'category_id': category_id,
                'category_name': category.name if category else 'Unknown',
                'category_icon': category.icon if category else '📦',
                'category_color': category.color if category else '#6b7280',
                'total': round(total, 2),
                'percentage': round(total / total_expenses * 100, 2) if total_expenses > 0 else 0
            })
        expenses_by_category.sort(key=lambda e: e['total'], reverse=True)

        return {
            'total_income': round(totals['income'], 2),
            'total_expenses': round(total_expenses, 2),
            'balance': round(totals['income'] - total_expenses, 2),
            'expenses_by_category': expenses_by_category
        }
