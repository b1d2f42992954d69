"""JavaScript evaluated inside the page.

Kept in one place so script changes don't touch dispatch logic.
"""

# Runs a credentialed fetch in the page's own origin. Never throws: a
# failed attempt comes back as {status: 0, ok: false, error}.
# Header tiers are captured independently; Python picks the first usable.
FETCH_SCRIPT = """
async ({ url, method, headers, body, commonHeaders, essentialHeaders }) => {
    const fetchOptions = { method, headers, credentials: 'include' };
    if (body !== null && body !== undefined) {
        fetchOptions.body = body;
    }
    try {
        const response = await fetch(url, fetchOptions);
        const text = await response.text();
        const tiers = { entries: null, common: null, essential: null };
        try {
            if (response.headers && response.headers.forEach) {
                const entries = [];
                response.headers.forEach((value, key) => entries.push([key, value]));
                tiers.entries = entries;
            }
        } catch (e) {}
        try {
            const common = {};
            for (const name of commonHeaders) {
                const value = response.headers.get(name);
                if (value) common[name] = value;
            }
            tiers.common = common;
        } catch (e) {}
        try {
            const essential = {};
            for (const name of essentialHeaders) {
                essential[name] = response.headers.get(name) || '';
            }
            tiers.essential = essential;
        } catch (e) {}
        let contentType = '';
        try {
            contentType = response.headers.get('content-type') || '';
        } catch (e) {}
        return {
            status: response.status,
            ok: response.ok,
            redirected: response.redirected,
            contentType,
            text,
            headerTiers: tiers,
        };
    } catch (error) {
        return {
            status: 0,
            ok: false,
            error: String((error && error.message) || error || 'Unknown error'),
        };
    }
}
"""

BODY_TEXT_SCRIPT = """
() => document.body ? (document.body.textContent || document.body.innerText || '') : ''
"""
