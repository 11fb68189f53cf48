"""
Cart, wishlist and order API views.

Checkout places orders in ``awaiting_approval``; admins approve or reject
them before the customer can pay.
"""
import logging
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.catalog.services import CatalogService
from apps.core.exceptions import PermissionDeniedError
from apps.core.permissions import requires_scopes, HasStoreScopes
from apps.orders.services import CartService, WishlistService, OrderService
from apps.orders.serializers import (
    CartItemSerializer, CartSummarySerializer, AddToCartSerializer,
    UpdateCartItemSerializer, WishlistItemSerializer, AddToWishlistSerializer,
    OrderSerializer, OrderCreateSerializer, OrderStatusSerializer,
    OrderPaymentSerializer, ApproveOrderSerializer, RejectOrderSerializer,
)

logger = logging.getLogger(__name__)


class StandardResultsSetPagination(PageNumberPagination):
    """Standard pagination for list endpoints."""
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 100


def _cart_payload(store, user):
    items = list(CartService.get_items(store, user))
    return {
        'items': CartItemSerializer(items, many=True).data,
        'summary': CartSummarySerializer(CartService.summary(store, user, items=items)).data,
    }


# ===== CART =====

class CartView(APIView):
    """
    GET    /v1/cart  (cart:view)
    POST   /v1/cart  (cart:add)
    DELETE /v1/cart  (cart:clear)
    """

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['Cart'],
        summary='Get cart',
        description='Cart lines with totals. Tax uses the store tax rate; shipping is free.',
        responses={200: OpenApiTypes.OBJECT},
    )
    @requires_scopes('cart:view')
    def get(self, request):
        return Response(_cart_payload(request.store, request.user))

    @extend_schema(
        tags=['Cart'],
        summary='Add product to cart',
        description='''
Sale products merge into the existing line. Rental products need
`rental_start_date` and `rental_end_date` and always get a new line priced
per inclusive rental day.

**Required scope:** `cart:add`
        ''',
        request=AddToCartSerializer,
        responses={201: CartItemSerializer, 400: OpenApiTypes.OBJECT},
    )
    @requires_scopes('cart:add')
    def post(self, request):
        serializer = AddToCartSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        product = CatalogService.get_product(request.store, data['product_id'], include_inactive=True)
        item = CartService.add_item(
            request.store,
            request.user,
            product,
            quantity=data['quantity'],
            rental_start_date=data.get('rental_start_date'),
            rental_end_date=data.get('rental_end_date'),
        )
        return Response(CartItemSerializer(item).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=['Cart'],
        summary='Clear cart',
        responses={204: None},
    )
    @requires_scopes('cart:clear')
    def delete(self, request):
        CartService.clear(request.store, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


class CartItemView(APIView):
    """
    PUT    /v1/cart/{product_id}  (cart:update)
    DELETE /v1/cart/{product_id}  (cart:remove)
    """

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['Cart'],
        summary='Update cart quantity',
        description='A quantity of 0 or less removes the line (204).\n\n**Required scope:** `cart:update`',
        request=UpdateCartItemSerializer,
        responses={200: CartItemSerializer, 204: None, 404: OpenApiTypes.OBJECT},
    )
    @requires_scopes('cart:update')
    def put(self, request, product_id):
        serializer = UpdateCartItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        item = CartService.update_quantity(
            request.store, request.user, product_id, serializer.validated_data['quantity']
        )
        if item is None:
            return Response(status=status.HTTP_204_NO_CONTENT)
        return Response(CartItemSerializer(item).data)

    patch = put

    @extend_schema(
        tags=['Cart'],
        summary='Remove product from cart',
        responses={204: None, 404: OpenApiTypes.OBJECT},
    )
    @requires_scopes('cart:remove')
    def delete(self, request, product_id):
        CartService.remove_item(request.store, request.user, product_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


# ===== WISHLIST =====

class WishlistView(APIView):
    """
    GET  /v1/wishlist
    POST /v1/wishlist
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=['Wishlist'],
        summary='Get wishlist',
        responses={200: WishlistItemSerializer(many=True)},
    )
    def get(self, request):
        items = WishlistService.list_items(request.store, request.user)
        return Response(WishlistItemSerializer(items, many=True).data)

    @extend_schema(
        tags=['Wishlist'],
        summary='Add product to wishlist',
        description='Adding a product twice returns the existing entry.',
        request=AddToWishlistSerializer,
        responses={201: WishlistItemSerializer},
    )
    def post(self, request):
        serializer = AddToWishlistSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        product = CatalogService.get_product(request.store, serializer.validated_data['product_id'])
        item = WishlistService.add(request.store, request.user, product)
        return Response(WishlistItemSerializer(item).data, status=status.HTTP_201_CREATED)


class WishlistItemView(APIView):
    """DELETE /v1/wishlist/{product_id}"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=['Wishlist'],
        summary='Remove product from wishlist',
        responses={204: None},
    )
    def delete(self, request, product_id):
        WishlistService.remove(request.store, request.user, product_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


# ===== ORDERS =====

class OrderListView(APIView):
    """
    GET  /v1/orders  (orders:own or orders:view)
    POST /v1/orders  (orders:create)
    """

    permission_classes = [HasStoreScopes]
    pagination_class = StandardResultsSetPagination

    def check_permissions(self, request):
        """Set required scopes based on HTTP method before permission check."""
        if request.method == 'GET':
            self.any_scopes = {'orders:own', 'orders:view'}
        elif request.method == 'POST':
            self.required_scopes = {'orders:create'}
        super().check_permissions(request)

    @extend_schema(
        tags=['Orders'],
        summary='List orders',
        description='Holders of `orders:view` see every store order; other callers see their own.',
        parameters=[
            OpenApiParameter('status', OpenApiTypes.STR, description='Filter by order status'),
            OpenApiParameter(
                'approval_status', OpenApiTypes.STR,
                description='Filter by admin approval status',
                enum=['pending', 'approved', 'rejected'],
            ),
            OpenApiParameter('page', OpenApiTypes.INT),
            OpenApiParameter('page_size', OpenApiTypes.INT),
        ],
        responses={200: OrderSerializer(many=True)},
    )
    def get(self, request):
        orders = OrderService.list_orders(
            request.store,
            request.user,
            request.scopes,
            status=request.query_params.get('status'),
            approval_status=request.query_params.get('approval_status'),
        )

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(orders, request)
        serializer = OrderSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    @extend_schema(
        tags=['Orders'],
        summary='Place order',
        description='''
Check out the cart. The order waits for admin approval before payment;
stock is taken now and the cart is cleared.

**Required scope:** `orders:create`
        ''',
        request=OrderCreateSerializer,
        responses={201: OrderSerializer, 400: OpenApiTypes.OBJECT},
    )
    def post(self, request):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order = OrderService.create_order(
            request.store,
            request.user,
            shipping_address=data.get('shipping_address'),
            payment_method=data.get('payment_method'),
            billing_address=data.get('billing_address'),
            order_notes=data.get('order_notes'),
            request=request,
        )
        order = OrderService.get_order(request.store, order.id)
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


class OrderDetailView(APIView):
    """GET /v1/orders/{id} (owner or orders:view)"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=['Orders'],
        summary='Get order',
        responses={200: OrderSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    )
    def get(self, request, order_id):
        order = OrderService.get_order(request.store, order_id)
        if not OrderService.can_view(order, request.user, request.scopes):
            raise PermissionDeniedError('You do not have access to this order')
        return Response(OrderSerializer(order).data)


class OrderStatusView(APIView):
    """PUT /v1/orders/{id}/status (orders:edit)"""

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['Orders'],
        summary='Set order status',
        description='''
Admin override. Cancelling an order that has not been paid returns its stock.

**Required scope:** `orders:edit`
        ''',
        request=OrderStatusSerializer,
        responses={200: OrderSerializer, 400: OpenApiTypes.OBJECT},
    )
    @requires_scopes('orders:edit')
    def put(self, request, order_id):
        serializer = OrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = OrderService.get_order(request.store, order_id)
        OrderService.update_status(
            order, serializer.validated_data['status'], user=request.user, request=request
        )
        return Response(OrderSerializer(OrderService.get_order(request.store, order_id)).data)

    patch = put


class OrderPaymentView(APIView):
    """PUT /v1/orders/{id}/payment (owner with payments:view, or orders:manage)"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=['Orders'],
        summary='Record order payment',
        description='''
Only approved orders can be paid (409 `PAYMENT_NOT_ALLOWED` otherwise).
A completed payment confirms the order and emails the customer.
        ''',
        request=OrderPaymentSerializer,
        responses={200: OrderSerializer, 403: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT},
    )
    def put(self, request, order_id):
        order = OrderService.get_order(request.store, order_id)
        scopes = request.scopes or set()
        is_owner = order.user_id == request.user.id
        if not ('orders:manage' in scopes or (is_owner and 'payments:view' in scopes)):
            raise PermissionDeniedError('You cannot record payment for this order')

        serializer = OrderPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        OrderService.record_payment(
            order,
            payment_method=data['payment_method'],
            payment_reference=data.get('payment_reference'),
            payment_status=data['payment_status'],
            user=request.user,
            request=request,
        )
        return Response(OrderSerializer(OrderService.get_order(request.store, order_id)).data)

    patch = put


# ===== ADMIN APPROVAL =====

@requires_scopes('orders:approve')
class ApprovalRequestListView(APIView):
    """GET /v1/admin/approval-requests (orders:approve)"""

    permission_classes = [HasStoreScopes]
    pagination_class = StandardResultsSetPagination

    @extend_schema(
        tags=['Orders - Approval'],
        summary='List orders awaiting approval',
        description='Oldest first.\n\n**Required scope:** `orders:approve`',
        responses={200: OrderSerializer(many=True)},
    )
    def get(self, request):
        orders = OrderService.approval_requests(request.store)

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(orders, request)
        serializer = OrderSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)


@requires_scopes('orders:approve')
class ApproveOrderView(APIView):
    """PUT /v1/admin/orders/{id}/approve (orders:approve)"""

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['Orders - Approval'],
        summary='Approve order',
        description='Moves the order to `payment_pending` and emails the customer.\n\n**Required scope:** `orders:approve`',
        request=ApproveOrderSerializer,
        responses={200: OrderSerializer, 409: OpenApiTypes.OBJECT},
    )
    def put(self, request, order_id):
        serializer = ApproveOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = OrderService.get_order(request.store, order_id)
        OrderService.approve(order, request.user, remarks=serializer.validated_data['remarks'], request=request)
        return Response(OrderSerializer(OrderService.get_order(request.store, order_id)).data)


@requires_scopes('orders:reject')
class RejectOrderView(APIView):
    """PUT /v1/admin/orders/{id}/reject (orders:reject)"""

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['Orders - Approval'],
        summary='Reject order',
        description='Cancels the order, returns its stock and emails the reason.\n\n**Required scope:** `orders:reject`',
        request=RejectOrderSerializer,
        responses={200: OrderSerializer, 400: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT},
    )
    def put(self, request, order_id):
        serializer = RejectOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = OrderService.get_order(request.store, order_id)
        OrderService.reject(order, request.user, serializer.validated_data['remarks'], request=request)
        return Response(OrderSerializer(OrderService.get_order(request.store, order_id)).data)


@requires_scopes('orders:complete')
class CompleteOrderView(APIView):
    """PUT /v1/admin/orders/{id}/complete (orders:complete)"""

    permission_classes = [HasStoreScopes]

    @extend_schema(
        tags=['Orders - Approval'],
        summary='Complete order',
        description='Marks a paid order as delivered.\n\n**Required scope:** `orders:complete`',
        responses={200: OrderSerializer, 409: OpenApiTypes.OBJECT},
    )
    def put(self, request, order_id):
        order = OrderService.get_order(request.store, order_id)
        OrderService.complete(order, request.user, request=request)
        return Response(OrderSerializer(OrderService.get_order(request.store, order_id)).data)
