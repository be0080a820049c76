# circulation/controllers/book_controller.py

from flask import Blueprint, request, jsonify

from circulation.controllers import int_value, page_args, services

book_bp = Blueprint("books", __name__)


@book_bp.get("/")
def list_books():
    result = services().books.list_books(
        search=request.args.get("search"),
        author=request.args.get("author"),
        sort_by=request.args.get("sortBy", "title"),
        sort_order=request.args.get("sortOrder", "ASC"),
        **page_args(),
    )
    return jsonify({"success": True, "data": result["books"], "pagination": result["pagination"]})


@book_bp.post("/")
def create_book():
    data = request.get_json(silent=True) or {}
    b = services().books.create_book(data)
    return jsonify({"success": True, "data": b.to_dict()}), 201


@book_bp.get("/low-availability")
def low_availability():
    threshold = int_value(request.args.get("threshold"), "threshold", required=False)
    books = services().books.get_low_availability_books(threshold)
    return jsonify({"success": True, "data": [b.to_dict() for b in books]})


@book_bp.get("/isbn/<isbn>")
def get_by_isbn(isbn: str):
    return jsonify({"success": True, "data": services().books.get_book_by_isbn(isbn).to_dict()})


@book_bp.delete("/isbn/<isbn>")
def delete_by_isbn(isbn: str):
    services().books.delete_book_by_isbn(isbn)
    return jsonify({"success": True})


@book_bp.get("/<int:book_id>")
def get_book(book_id: int):
    return jsonify({"success": True, "data": services().books.get_book(book_id).to_dict()})


@book_bp.put("/<int:book_id>")
def update_book(book_id: int):
    data = request.get_json(silent=True) or {}
    b = services().books.update_book(book_id, data)
    return jsonify({"success": True, "data": b.to_dict()})


@book_bp.delete("/<int:book_id>")
def delete_book(book_id: int):
    services().books.delete_book(book_id)
    return jsonify({"success": True})
