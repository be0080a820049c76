from flask import Blueprint, request, jsonify

from circulation.controllers import int_value, page_args, services

borrowing_bp = Blueprint("borrowings", __name__)


def _list_args():
    return {
        **page_args(),
        "status": request.args.get("status", "all"),
        "sort_by": request.args.get("sortBy", "checkout_date"),
        "sort_order": request.args.get("sortOrder", "DESC"),
    }


@borrowing_bp.post("/checkout")
def checkout():
    data = request.get_json(silent=True) or {}
    b = services().circulation.checkout(
        int_value(data.get("book_id"), "book_id"),
        int_value(data.get("borrower_id"), "borrower_id"),
        data.get("due_date"),
    )
    return jsonify({"success": True, "message": "Book checked out successfully", "data": b}), 201


@borrowing_bp.post("/<int:borrowing_id>/return")
def return_book(borrowing_id: int):
    data = request.get_json(silent=True) or {}
    b = services().circulation.return_book(borrowing_id, data.get("return_date"))
    return jsonify({"success": True, "message": "Book returned successfully", "data": b})


@borrowing_bp.put("/<int:borrowing_id>/extend")
def extend(borrowing_id: int):
    data = request.get_json(silent=True) or {}
    b = services().circulation.extend_due_date(
        borrowing_id,
        data.get("new_due_date"),
        data.get("extension_reason"),
    )
    return jsonify({"success": True, "message": "Due date extended successfully", "data": b})


@borrowing_bp.get("/")
def list_borrowings():
    result = services().circulation.list_borrowings(
        borrower_id=int_value(request.args.get("borrower_id"), "borrower_id", required=False),
        book_id=int_value(request.args.get("book_id"), "book_id", required=False),
        **_list_args(),
    )
    return jsonify({"success": True, "data": result["borrowings"], "pagination": result["pagination"]})


@borrowing_bp.get("/overdue")
def overdue():
    return jsonify({"success": True, "data": services().circulation.get_overdue_borrowings()})


@borrowing_bp.get("/statistics")
def statistics():
    result = services().circulation.get_statistics(
        request.args.get("start_date"),
        request.args.get("end_date"),
    )
    return jsonify({"success": True, "data": result})


@borrowing_bp.get("/validate")
def validate():
    ok, message = services().circulation.validate_checkout(
        int_value(request.args.get("book_id"), "book_id"),
        int_value(request.args.get("borrower_id"), "borrower_id"),
    )
    return jsonify({"success": True, "data": {"isValid": ok, "message": message}})


@borrowing_bp.get("/<int:borrowing_id>")
def get_borrowing(borrowing_id: int):
    return jsonify({"success": True, "data": services().circulation.get_borrowing(borrowing_id)})


@borrowing_bp.get("/borrower/<int:borrower_id>")
def by_borrower(borrower_id: int):
    result = services().circulation.get_borrowings_by_borrower(borrower_id, **_list_args())
    return jsonify({
        "success": True,
        "data": result["borrowings"],
        "pagination": result["pagination"],
        "meta": {"borrower_id": borrower_id},
    })


@borrowing_bp.get("/book/<int:book_id>")
def by_book(book_id: int):
    result = services().circulation.get_borrowings_by_book(book_id, **_list_args())
    return jsonify({
        "success": True,
        "data": result["borrowings"],
        "pagination": result["pagination"],
        "meta": {"book_id": book_id},
    })
