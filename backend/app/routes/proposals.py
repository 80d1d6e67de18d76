# Overview: Flask API routes for proposal operations; parses input and returns JSON responses.

# backend/app/routes/proposals.py
"""
Proposal API Routes

WHY: The internal dashboard sends proposals; clients open the emailed link,
sign, and pay. Client-facing routes are keyed by the proposal id alone - the
id is the capability.

ROUTES:
- POST /api/send-proposal                   (admin)  Create + email
- GET  /api/proposals                       (admin)  Paginated summaries
- GET  /api/proposals/<id>                           View (?track=false to skip open tracking)
- POST /api/proposals/<id>/sign                      Sign
- POST /api/proposals/<id>/checkout                  Start Stripe checkout
- GET  /api/proposals/<id>/payment-status            Poll payment status
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_admin
from ..extensions import get_notifier, get_payment_gateway, get_settings
from ..services import lifecycle_service
from ..services.payment_gateway import PaymentGatewayError
from ..validation import ConflictError, NotFoundError, PreconditionFailedError, ValidationError


proposals_bp = Blueprint("proposals", __name__, url_prefix="/api")


# =============================================================================
# INTERNAL (ADMIN)
# =============================================================================

@proposals_bp.post("/send-proposal")
@require_admin
def send_proposal_route():
    """
    Create a proposal and email it to the client.

    Request body (camelCase or snake_case):
    {
        "contactName": "Jane Doe",          (or contact_name)
        "company": "Acme",                  (or company_name)
        "email": "jane@acme.com",           (or contact_email)
        "tier": "professional",             (optional; omit when client chooses)
        "extraTrainees": 2, "extraKits": 0,
        "tracks": ["Commercial"], "videography": false, "onRoofDay": true,
        "totalPrice": 12500, "letClientChoose": false, "vimeoUrl": "https://vimeo.com/123"
    }

    Returns:
        200: Proposal created (warnings list any failed emails)
        400: Missing/invalid fields
        401: Not authenticated
        500: Server error
    """
    try:
        settings = get_settings()
        result = lifecycle_service.create_proposal(
            request.get_json(silent=True),
            settings=settings,
            notifier=get_notifier(),
        )
        proposal = result.proposal
        proposal_url = settings.proposal_url(proposal.id)

        return jsonify({
            "success": True,
            "proposal": {
                "unique_id": proposal.id,
                "proposalId": proposal.id,
                "proposalUrl": proposal_url,
                "proposal_url": proposal_url,
            },
            "message": f"Proposal sent to {proposal.email}",
            "warnings": result.warnings,
        }), 200

    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except Exception:
        current_app.logger.exception("Failed to send proposal")
        return jsonify({"error": "Failed to send proposal"}), 500


@proposals_bp.get("/proposals")
@require_admin
def list_proposals_route():
    """
    List proposals for the internal dashboard, newest first.

    Query params:
    - limit: page size (default 50, clamped to 1..200)
    - offset: rows to skip (default 0)
    """
    try:
        page = lifecycle_service.list_proposals(
            request.args.get("limit"),
            request.args.get("offset"),
        )
        return jsonify({
            "proposals": [p.to_summary() for p in page.proposals],
            "total": page.total,
            "limit": page.limit,
            "offset": page.offset,
        }), 200
    except Exception:
        current_app.logger.exception("Failed to list proposals")
        return jsonify({"error": "Failed to list proposals"}), 500


# =============================================================================
# CLIENT-FACING (CAPABILITY = PROPOSAL ID)
# =============================================================================

@proposals_bp.get("/proposals/<proposal_id>")
def get_proposal_route(proposal_id: str):
    """
    Proposal data for the client page.

    Query params:
    - track: "false" skips open tracking (payment-status refetches)
    """
    try:
        track_open = request.args.get("track", "true").lower() != "false"
        proposal = lifecycle_service.view_proposal(proposal_id, track_open=track_open)
        return jsonify(proposal.to_dict()), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to load proposal")
        return jsonify({"error": "Failed to load proposal"}), 500


@proposals_bp.post("/proposals/<proposal_id>/sign")
def sign_proposal_route(proposal_id: str):
    """
    Client signs the proposal.

    Request body:
    {
        "signatureName": "Jane Doe",
        "signatureData": "data:image/png;base64,..."
    }

    Returns:
        200: Signed
        400: Missing or oversized signature
        404: Unknown proposal
        409: Already signed
    """
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        result = lifecycle_service.sign_proposal(
            proposal_id,
            data.get("signatureName"),
            data.get("signatureData"),
            notifier=get_notifier(),
        )
        return jsonify({
            "success": True,
            "message": "Proposal signed",
            "warnings": result.warnings,
        }), 200

    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to sign proposal")
        return jsonify({"error": "Failed to sign proposal"}), 500


@proposals_bp.post("/proposals/<proposal_id>/checkout")
def checkout_route(proposal_id: str):
    """
    Create a Stripe Checkout session so the client can pay after signing.

    Returns:
        200: {"checkoutUrl": "..."}
        400: No price set
        404: Unknown proposal
        409: Already paid
        412: Not signed yet
        502: Stripe unavailable
    """
    try:
        session = lifecycle_service.create_payment_session(proposal_id, gateway=get_payment_gateway())
        return jsonify({"checkoutUrl": session.url}), 200

    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except PreconditionFailedError as e:
        return jsonify({"error": str(e)}), 412
    except PaymentGatewayError:
        current_app.logger.exception("Stripe checkout error")
        return jsonify({"error": "Failed to create checkout session"}), 502
    except Exception:
        current_app.logger.exception("Failed to create checkout session")
        return jsonify({"error": "Failed to create checkout session"}), 500


@proposals_bp.get("/proposals/<proposal_id>/payment-status")
def payment_status_route(proposal_id: str):
    try:
        return jsonify({"payment_status": lifecycle_service.get_payment_status(proposal_id)}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to check payment status")
        return jsonify({"error": "Failed to check payment status"}), 500
