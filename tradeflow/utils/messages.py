"""
Localized error messages.

One table per locale keyed by ``ErrorCode``. Lookup falls back from the
requested locale to the default locale and finally to the raw code.
"""
from typing import Dict, Optional, Union

from tradeflow.exceptions import ErrorCode

DEFAULT_LOCALE = 'en'

ERROR_MESSAGES: Dict[str, Dict[ErrorCode, str]] = {
    'en': {
        ErrorCode.EMPTY_CART: 'Your cart is empty',
        ErrorCode.INSUFFICIENT_STOCK: 'Not enough stock for this product',
        ErrorCode.DISCOUNT_NOT_FOUND: 'Discount code not found',
        ErrorCode.DISCOUNT_INACTIVE: 'This discount is not active',
        ErrorCode.DISCOUNT_EXPIRED: 'This discount has expired',
        ErrorCode.MIN_ORDER_AMOUNT: 'Order total is below the minimum for this discount',
        ErrorCode.MIN_QTY: 'Not enough items in the cart for this discount',
        ErrorCode.ORDER_NOT_CANCELLABLE: 'This order can no longer be cancelled',
        ErrorCode.ORDER_LIMIT_REACHED: 'You have too many open orders',
        ErrorCode.INVALID_MODE: 'Invalid visit mode',
        ErrorCode.INVALID_VISIT_TYPE: 'Invalid visit type',
        ErrorCode.INVALID_OUTCOME: 'Invalid visit outcome',
        ErrorCode.MISSING_REQUIRED_FIELD: 'A required field is missing',
        ErrorCode.INVALID_DATE: 'Invalid date',
        ErrorCode.INVALID_STATUS_TRANSITION: 'This action is not allowed in the current status',
        ErrorCode.PRODUCT_NOT_FOUND: 'Product not found',
        ErrorCode.ITEM_NOT_IN_PO: 'This product is not part of the purchase order',
        ErrorCode.PO_NOT_EDITABLE: 'Only draft purchase orders can be edited',
        ErrorCode.PO_NOT_READY: 'This purchase order is not ready for receiving',
        ErrorCode.NOT_FOUND: 'Not found',
        ErrorCode.VALIDATION_ERROR: 'Invalid input',
        ErrorCode.UNAUTHORIZED: 'Please sign in again',
        ErrorCode.FORBIDDEN: 'You do not have access to this resource',
        ErrorCode.SERVER_ERROR: 'Something went wrong, please try again',
        ErrorCode.NETWORK_ERROR: 'Network error, check your connection and retry',
    },
    'ru': {
        ErrorCode.EMPTY_CART: 'Корзина пуста',
        ErrorCode.INSUFFICIENT_STOCK: 'Недостаточно товара на складе',
        ErrorCode.DISCOUNT_NOT_FOUND: 'Промокод не найден',
        ErrorCode.DISCOUNT_INACTIVE: 'Скидка неактивна',
        ErrorCode.DISCOUNT_EXPIRED: 'Срок действия скидки истёк',
        ErrorCode.MIN_ORDER_AMOUNT: 'Сумма заказа меньше минимальной для этой скидки',
        ErrorCode.MIN_QTY: 'Недостаточно товаров в корзине для этой скидки',
        ErrorCode.ORDER_NOT_CANCELLABLE: 'Этот заказ уже нельзя отменить',
        ErrorCode.ORDER_LIMIT_REACHED: 'Слишком много открытых заказов',
        ErrorCode.INVALID_MODE: 'Неверный режим визита',
        ErrorCode.INVALID_VISIT_TYPE: 'Неверный тип визита',
        ErrorCode.INVALID_OUTCOME: 'Неверный результат визита',
        ErrorCode.MISSING_REQUIRED_FIELD: 'Не заполнено обязательное поле',
        ErrorCode.INVALID_DATE: 'Неверная дата',
        ErrorCode.INVALID_STATUS_TRANSITION: 'Действие недоступно в текущем статусе',
        ErrorCode.PRODUCT_NOT_FOUND: 'Товар не найден',
        ErrorCode.ITEM_NOT_IN_PO: 'Товара нет в заказе поставщику',
        ErrorCode.PO_NOT_EDITABLE: 'Редактировать можно только черновик заказа',
        ErrorCode.PO_NOT_READY: 'Заказ поставщику ещё не готов к приёмке',
        ErrorCode.NOT_FOUND: 'Не найдено',
        ErrorCode.VALIDATION_ERROR: 'Некорректные данные',
        ErrorCode.UNAUTHORIZED: 'Войдите снова',
        ErrorCode.FORBIDDEN: 'Нет доступа',
        ErrorCode.SERVER_ERROR: 'Произошла ошибка, попробуйте ещё раз',
        ErrorCode.NETWORK_ERROR: 'Ошибка сети, проверьте подключение',
    },
    'uz': {
        ErrorCode.EMPTY_CART: "Savatingiz bo'sh",
        ErrorCode.INSUFFICIENT_STOCK: "Omborda mahsulot yetarli emas",
        ErrorCode.DISCOUNT_NOT_FOUND: "Promokod topilmadi",
        ErrorCode.DISCOUNT_INACTIVE: "Chegirma faol emas",
        ErrorCode.DISCOUNT_EXPIRED: "Chegirma muddati tugagan",
        ErrorCode.MIN_ORDER_AMOUNT: "Buyurtma summasi chegirma uchun minimaldan kam",
        ErrorCode.MIN_QTY: "Chegirma uchun savatda mahsulot yetarli emas",
        ErrorCode.ORDER_NOT_CANCELLABLE: "Bu buyurtmani endi bekor qilib bo'lmaydi",
        ErrorCode.ORDER_LIMIT_REACHED: "Ochiq buyurtmalar soni juda ko'p",
        ErrorCode.INVALID_MODE: "Tashrif rejimi noto'g'ri",
        ErrorCode.INVALID_VISIT_TYPE: "Tashrif turi noto'g'ri",
        ErrorCode.INVALID_OUTCOME: "Tashrif natijasi noto'g'ri",
        ErrorCode.MISSING_REQUIRED_FIELD: "Majburiy maydon to'ldirilmagan",
        ErrorCode.INVALID_DATE: "Sana noto'g'ri",
        ErrorCode.INVALID_STATUS_TRANSITION: "Joriy holatda bu amalni bajarib bo'lmaydi",
        ErrorCode.PRODUCT_NOT_FOUND: "Mahsulot topilmadi",
        ErrorCode.ITEM_NOT_IN_PO: "Mahsulot xarid buyurtmasida yo'q",
        ErrorCode.PO_NOT_EDITABLE: "Faqat qoralama buyurtmani tahrirlash mumkin",
        ErrorCode.PO_NOT_READY: "Xarid buyurtmasi qabul qilishga tayyor emas",
        ErrorCode.NOT_FOUND: "Topilmadi",
        ErrorCode.VALIDATION_ERROR: "Ma'lumotlar noto'g'ri",
        ErrorCode.UNAUTHORIZED: "Qaytadan kiring",
        ErrorCode.FORBIDDEN: "Ruxsat yo'q",
        ErrorCode.SERVER_ERROR: "Xatolik yuz berdi, qaytadan urinib ko'ring",
        ErrorCode.NETWORK_ERROR: "Tarmoq xatosi, ulanishni tekshiring",
    },
}


def translate_error(code: Union[ErrorCode, str], locale: Optional[str] = None,
                    default_locale: str = DEFAULT_LOCALE) -> str:
    """Localized message for ``code``: requested locale, default locale, raw code."""
    try:
        key = ErrorCode(code)
    except ValueError:
        return str(code)

    for candidate in (locale, default_locale):
        table = ERROR_MESSAGES.get(candidate or '')
        if table and key in table:
            return table[key]
    return key.value
