"""
Products Admin Routes
=====================

Complete product management for admin: listing, live updates, create,
update and delete with image upload.
"""

import json

from flask import Response, current_app, jsonify, request, stream_with_context

from . import products_bp
from ...core.context import get_context
from ...core.documents import CREATE_TIME
from ...core.sync import LiveCollection
from ..auth.utils import admin_required
from .controller import ImageUpload, ProductFormController
from .models import normalize_product, product_to_json

FORM_FIELDS = ('name', 'description', 'price', 'inventory', 'category', 'active')


def _controller():
    return ProductFormController.from_context(get_context())


def _form_fields():
    data = request.get_json(silent=True)
    if data is None:
        data = request.form
    return {key: data.get(key) for key in FORM_FIELDS if key in data}


def _image():
    return ImageUpload.from_file_storage(request.files.get('image'))


@products_bp.route('/api/products')
@admin_required
def get_products(actor):
    """Get all products"""
    products = _controller().list_products()
    return jsonify({'success': True, 'products': [product_to_json(p) for p in products]})


@products_bp.route('/api/product/<product_id>')
@admin_required
def get_product(product_id, actor):
    """Get single product details"""
    product = _controller().get_product(product_id)
    return jsonify({'success': True, 'product': product_to_json(product)})


@products_bp.route('/api/create', methods=['POST'])
@admin_required
def create_product(actor):
    """Create new product"""
    product = _controller().create(_form_fields(), _image(), actor=actor)
    return jsonify({'success': True, 'product': product_to_json(product)}), 201


@products_bp.route('/api/update/<product_id>', methods=['POST'])
@admin_required
def update_product(product_id, actor):
    """Update product"""
    product = _controller().update(product_id, _form_fields(), _image(), actor=actor)
    return jsonify({'success': True, 'product': product_to_json(product)})


@products_bp.route('/api/delete/<product_id>', methods=['POST'])
@admin_required
def delete_product(product_id, actor):
    """Delete product and its image"""
    _controller().delete(product_id, actor=actor)
    return jsonify({'success': True, 'message': f"Product {product_id} deleted"})


@products_bp.route('/api/stream')
@admin_required
def products_stream(actor):
    """Server-Sent Events feed of the product list"""
    context = get_context()
    keepalive = current_app.config.get('STREAM_KEEPALIVE_SECONDS', 15)
    live = LiveCollection(
        context.store,
        context.setting('PRODUCTS_COLLECTION', 'productos'),
        normalize_product,
        order_by=CREATE_TIME,
        descending=True,
    )

    def generate():
        live.start()
        try:
            for products in live.stream(timeout=keepalive):
                if products is None:
                    yield ": keep-alive\n\n"
                    continue
                body = json.dumps([product_to_json(p) for p in products], default=str)
                yield f"event: products\ndata: {body}\n\n"
        finally:
            live.stop()

    return Response(stream_with_context(generate()), mimetype='text/event-stream')
