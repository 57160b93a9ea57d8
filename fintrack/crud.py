from datetime import date

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import ConflictError, NotFoundError, ValidationError
from .models import Category, EntryType, Role, Transaction, User
from .schemas import CategoryOut, TransactionOut, UserOut
from .security import hash_password


def user_to_dict(user: User) -> dict:
    return UserOut.model_validate(user).model_dump(mode="json")


def category_to_dict(category: Category) -> dict:
    return CategoryOut.model_validate(category).model_dump(mode="json")


def transaction_to_dict(txn: Transaction, category_name=None) -> dict:
    out = TransactionOut.model_validate(txn)
    out.category_name = category_name
    return out.model_dump(mode="json")


# --- transactions ---

def _transactions_with_category(db: Session):
    return db.query(Transaction, Category.name).outerjoin(
        Category, Transaction.category_id == Category.id
    )


def get_filtered_transactions(
    db: Session,
    user_id: int,
    type: EntryType = None,
    start_date: date = None,
    end_date: date = None,
    category_id: int = None,
    limit: int = None,
    offset: int = 0,
):
    query = _transactions_with_category(db).filter(Transaction.user_id == user_id)

    if type is not None:
        query = query.filter(Transaction.type == type)
    if start_date is not None:
        query = query.filter(Transaction.date >= start_date)
    if end_date is not None:
        query = query.filter(Transaction.date <= end_date)
    if category_id is not None:
        query = query.filter(Transaction.category_id == category_id)

    query = query.order_by(
        Transaction.date.desc(), Transaction.created_at.desc(), Transaction.id.desc()
    )
    if offset:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit)

    return [transaction_to_dict(txn, name) for txn, name in query.all()]


def _find_transaction(db: Session, txn_id: int, user) -> Transaction:
    # non-admins only see their own rows; anything else reads as missing
    query = db.query(Transaction).filter(Transaction.id == txn_id)
    if not user.is_admin:
        query = query.filter(Transaction.user_id == user.id)
    txn = query.first()
    if txn is None:
        raise NotFoundError("Transaction not found")
    return txn


def get_transaction_by_id(db: Session, txn_id: int, user) -> dict:
    txn = _find_transaction(db, txn_id, user)
    return transaction_to_dict(txn, txn.category.name if txn.category else None)


def _check_category(db: Session, category_id, owner_id: int, type: EntryType, enforce_type_match: bool):
    if category_id is None:
        return None
    category = db.query(Category).filter(
        Category.id == category_id,
        or_(Category.user_id.is_(None), Category.user_id == owner_id),
    ).first()
    if category is None:
        raise ValidationError.for_field("category_id", "Invalid category ID")
    if enforce_type_match and category.type != type:
        raise ValidationError.for_field(
            "category_id",
            f"Category '{category.name}' is for {category.type.value} transactions",
        )
    return category


def add_transaction(db: Session, user_id: int, data, enforce_type_match: bool = False) -> dict:
    category = _check_category(db, data.category_id, user_id, data.type, enforce_type_match)
    txn = Transaction(
        user_id=user_id,
        amount=data.amount,
        type=data.type,
        description=data.description,
        date=data.date or date.today(),
        category_id=data.category_id,
    )
    db.add(txn)
    db.commit()
    db.refresh(txn)
    return transaction_to_dict(txn, category.name if category else None)


def update_transaction(db: Session, txn_id: int, user, data, enforce_type_match: bool = False):
    """Apply ``data`` to a visible transaction; returns (row, owner id).

    ``amount`` and ``type`` are always replaced; optional fields the client
    did not send keep their stored values.
    """
    txn = _find_transaction(db, txn_id, user)
    sent = data.model_fields_set

    category_id = data.category_id if "category_id" in sent else txn.category_id
    category = _check_category(db, category_id, txn.user_id, data.type, enforce_type_match)

    txn.amount = data.amount
    txn.type = data.type
    txn.category_id = category_id
    if "description" in sent:
        txn.description = data.description
    if "date" in sent:
        txn.date = data.date or date.today()
    db.commit()
    db.refresh(txn)
    return transaction_to_dict(txn, category.name if category else None), txn.user_id


def delete_transaction(db: Session, txn_id: int, user) -> int:
    txn = _find_transaction(db, txn_id, user)
    owner_id = txn.user_id
    db.delete(txn)
    db.commit()
    return owner_id


# --- categories ---

def get_all_categories(db: Session, user_id: int):
    categories = db.query(Category).filter(
        (Category.user_id == user_id) | (Category.user_id.is_(None))
    ).order_by(Category.name, Category.id).all()
    return [category_to_dict(c) for c in categories]


def get_category_by_id(db: Session, category_id: int, user) -> Category:
    query = db.query(Category).filter(Category.id == category_id)
    if not user.is_admin:
        query = query.filter((Category.user_id == user.id) | (Category.user_id.is_(None)))
    category = query.first()
    if category is None:
        raise NotFoundError("Category not found")
    return category


def _owner_filter(user_id):
    return Category.user_id.is_(None) if user_id is None else Category.user_id == user_id


def add_category(db: Session, user_id, name: str, type: EntryType) -> dict:
    # NULL owners never collide in a UNIQUE index, so check explicitly
    duplicate = db.query(Category.id).filter(
        Category.name == name, Category.type == type, _owner_filter(user_id)
    ).first()
    if duplicate:
        raise ConflictError("Category already exists")

    new_cat = Category(name=name, type=type, user_id=user_id)
    db.add(new_cat)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Category already exists")
    db.refresh(new_cat)
    return category_to_dict(new_cat)


def update_category(db: Session, category: Category, name: str) -> dict:
    duplicate = db.query(Category.id).filter(
        Category.id != category.id,
        Category.name == name,
        Category.type == category.type,
        _owner_filter(category.user_id),
    ).first()
    if duplicate:
        raise ConflictError("Category already exists")

    category.name = name
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Category already exists")
    db.refresh(category)
    return category_to_dict(category)


def delete_category(db: Session, category: Category):
    # referencing transactions are kept; the FK sets their category_id to NULL
    db.delete(category)
    db.commit()


# --- users ---

def get_user_by_email(db: Session, email: str):
    return db.query(User).filter(User.email == email).first()


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def create_user(db: Session, name: str, email: str, password: str, role: Role = Role.USER) -> User:
    if get_user_by_email(db, email):
        raise ConflictError("Email already registered")

    new_user = User(name=name, email=email, password=hash_password(password), role=role)
    db.add(new_user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Email already registered")
    db.refresh(new_user)
    return new_user


def list_users(db: Session, role: Role = None, search: str = None):
    query = db.query(User)
    if role is not None:
        query = query.filter(User.role == role)
    if search:
        pattern = f"%{search.lower()}%"
        query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    users = query.order_by(User.created_at.desc(), User.id.desc()).all()
    return [user_to_dict(u) for u in users]


def update_user_role(db: Session, user_id: int, role: Role) -> dict:
    user = get_user(db, user_id)
    user.role = role
    db.commit()
    db.refresh(user)
    return user_to_dict(user)


def update_profile(db: Session, user_id: int, name: str = None, email: str = None) -> dict:
    user = get_user(db, user_id)
    if email and email != user.email:
        taken = db.query(User.id).filter(User.email == email, User.id != user_id).first()
        if taken:
            raise ConflictError("Email already in use")
        user.email = email
    if name:
        user.name = name
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Email already in use")
    db.refresh(user)
    return user_to_dict(user)


def set_password(db: Session, user: User, new_password: str):
    user.password = hash_password(new_password)
    db.commit()


def delete_user(db: Session, user_id: int):
    # transactions and categories go with the user via ON DELETE CASCADE
    deleted = db.query(User).filter(User.id == user_id).delete(synchronize_session=False)
    db.commit()
    if not deleted:
        raise NotFoundError("User not found")
